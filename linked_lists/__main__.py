import sys

from linked_lists.cli import main

sys.exit(main())

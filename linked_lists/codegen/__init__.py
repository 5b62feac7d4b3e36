"""
Linked List Runtime Code Generator Package

Generates the LLVM IR of the native linked list runtime.

    codegen/
    ├── __init__.py      # Package exports (this file)
    ├── core.py          # RuntimeGenerator: module, types, allocator, output
    ├── node.py          # NodeGenerator: node struct operations
    └── list.py          # ListGenerator: list struct operations
"""

from linked_lists.codegen.core import RuntimeGenerator, RuntimeBuildError
from linked_lists.codegen.node import NodeGenerator
from linked_lists.codegen.list import ListGenerator

__all__ = ['RuntimeGenerator', 'RuntimeBuildError', 'NodeGenerator', 'ListGenerator']

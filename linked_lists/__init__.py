"""
linked_lists: a singly linked list with native nodes, traced by a handle heap.

Package Structure:
    linked_lists/
    ├── __init__.py         # Package exports (this file)
    ├── linked_list.py      # LinkedList wrapper (append/prepend/shift/inspect/mark)
    ├── heap.py             # Managed heap: boxing, roots, mark-sweep (Heap, DataType)
    ├── handles.py          # Handle table management (HandleTable)
    ├── diagnostics.py      # Stats, dumps and validation (HeapDiagnostics)
    ├── errors.py           # Heap exceptions
    ├── runtime.py          # JIT loader and ctypes bindings (NativeRuntime)
    ├── cli.py              # linked-lists command
    └── codegen/
        ├── core.py         # Module, types, allocator (RuntimeGenerator)
        ├── node.py         # Node construction and release (NodeGenerator)
        └── list.py         # List operations (ListGenerator)
"""

from linked_lists.errors import HeapError, StaleHandleError, HeapClosedError
from linked_lists.handles import HandleTable, NONE_HANDLE
from linked_lists.heap import Heap, DataType, HeapStats, TypedData, default_heap
from linked_lists.diagnostics import HeapDiagnostics
from linked_lists.runtime import NativeRuntime, get_runtime
from linked_lists.linked_list import LinkedList, LINKED_LIST_TYPE

__version__ = "0.1.0"

__all__ = [
    'LinkedList',
    'LINKED_LIST_TYPE',
    'Heap',
    'DataType',
    'HeapStats',
    'TypedData',
    'default_heap',
    'HandleTable',
    'NONE_HANDLE',
    'HeapDiagnostics',
    'NativeRuntime',
    'get_runtime',
    'HeapError',
    'StaleHandleError',
    'HeapClosedError',
]

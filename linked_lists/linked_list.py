"""
LinkedList: singly linked list whose nodes live in native memory.

The Python object is a thin typed data wrapper. The node chain belongs to
the native runtime and holds only value handles; the heap learns which
values the chain keeps alive through the list's trace hook (mark), and
frees the chain through its release hook when the list becomes
unreachable.

    lst = LinkedList()
    lst << 1 << 2        # append
    lst >> 0             # prepend
    lst.shift()          # -> 0
    repr(lst)            # '#<LinkedList {1, 2}>'
"""
import reprlib
from typing import Any, Callable, Iterator, Optional

from linked_lists.heap import DataType, Heap, TypedData, default_heap
from linked_lists.runtime import get_runtime


def _trace(ptr: int, report: Callable[[int], None]):
    get_runtime().mark(ptr, report)


def _release(ptr: int):
    get_runtime().free_list(ptr)


def _measure(ptr: int) -> int:
    return get_runtime().memsize(ptr)


LINKED_LIST_TYPE = DataType("linkedList", trace=_trace, release=_release, measure=_measure)


class LinkedList(TypedData):
    """Singly linked list of host values."""

    data_type = LINKED_LIST_TYPE

    def __init__(self, heap: Optional[Heap] = None):
        if heap is None:
            heap = default_heap()
        heap.check_open()
        ptr = get_runtime().new_list()
        try:
            handle = heap.wrap_struct(type(self), self.data_type, ptr)
        except Exception:
            get_runtime().free_list(ptr)
            raise
        self._attach(heap, handle)

    def append(self, value: Any) -> 'LinkedList':
        """Add `value` at the tail. O(n): the tail is found by walking the chain."""
        ptr = self._struct()
        get_runtime().append(ptr, self._heap.box(value))
        return self

    __lshift__ = append

    def prepend(self, value: Any) -> 'LinkedList':
        """Add `value` at the head. O(1)."""
        ptr = self._struct()
        get_runtime().prepend(ptr, self._heap.box(value))
        return self

    __rshift__ = prepend

    def shift(self) -> Any:
        """Remove and return the first value, or None when the list is empty."""
        return self._heap.deref(get_runtime().shift(self._struct()))

    def pop(self) -> Any:
        """Remove and return the last value, or None when the list is empty."""
        return self._heap.deref(get_runtime().pop(self._struct()))

    def clear(self) -> 'LinkedList':
        get_runtime().clear(self._struct())
        return self

    def mark(self, report: Callable[[int], None]):
        """Report the handle of every stored value except None, head to tail."""
        get_runtime().mark(self._struct(), report)

    def memsize(self) -> int:
        """Native bytes held by the list struct and its nodes."""
        return get_runtime().memsize(self._struct())

    def __len__(self) -> int:
        return get_runtime().length(self._struct())

    def __iter__(self) -> Iterator[Any]:
        handles = get_runtime().handles(self._struct())
        return iter([self._heap.deref(handle) for handle in handles])

    @reprlib.recursive_repr("...")
    def inspect(self) -> str:
        rendered = ", ".join(repr(value) for value in self)
        return f"#<{type(self).__name__} {{{rendered}}}>"

    __repr__ = inspect

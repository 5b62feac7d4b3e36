"""
Heap Handle Table

Handles are integer indices into a table of heap objects. The native
linked list stores nothing but these integers.

Handle Table Design:
- Handle 0 is reserved as the "none" sentinel and never allocated
- Handles are allocated from the free list (LIFO), then by bump allocation
- When the bump index reaches the table size, the table doubles
- Freed handles are retired first and only moved to the free list by
  promote_retired(), which the collector calls at the start of a cycle.
  A handle released during one collection is therefore never handed out
  again before the next one.
"""
from typing import Iterator, List as PyList, Optional, Tuple

from linked_lists.errors import StaleHandleError

NONE_HANDLE = 0


class HandleTable:
    """Maps handles to heap objects."""

    def __init__(self, initial_size: int = 64):
        if initial_size < 2:
            raise ValueError("handle table needs room for at least one handle")
        self._slots: PyList[Optional[object]] = [None] * initial_size
        self._next_handle = 1
        self._free: PyList[int] = []
        self._retired: PyList[int] = []
        self._live = 0

    @property
    def size(self) -> int:
        """Current table capacity (slot 0 included)."""
        return len(self._slots)

    @property
    def next_handle(self) -> int:
        return self._next_handle

    @property
    def free_handles(self) -> PyList[int]:
        return list(self._free)

    @property
    def retired_handles(self) -> PyList[int]:
        return list(self._retired)

    def __len__(self) -> int:
        return self._live

    def grow(self):
        """Double the table capacity."""
        self._slots.extend([None] * len(self._slots))

    def alloc(self, obj: object) -> int:
        """Store `obj` in a fresh slot and return its handle (never 0)."""
        if self._free:
            handle = self._free.pop()
        else:
            if self._next_handle >= len(self._slots):
                self.grow()
            handle = self._next_handle
            self._next_handle += 1
        self._slots[handle] = obj
        self._live += 1
        return handle

    def deref(self, handle: int) -> object:
        """Return the object stored under `handle`."""
        if handle <= NONE_HANDLE or handle >= len(self._slots):
            raise StaleHandleError(f"handle {handle} is out of range")
        obj = self._slots[handle]
        if obj is None:
            raise StaleHandleError(f"handle {handle} is not live")
        return obj

    def get(self, handle: int) -> Optional[object]:
        """Like deref, but None for anything that is not a live handle."""
        if NONE_HANDLE < handle < len(self._slots):
            return self._slots[handle]
        return None

    def is_live(self, handle: int) -> bool:
        return self.get(handle) is not None

    def retire(self, handle: int):
        """Empty the slot; the handle becomes reusable after promote_retired()."""
        self.deref(handle)
        self._slots[handle] = None
        self._retired.append(handle)
        self._live -= 1

    def promote_retired(self) -> int:
        """Move retired handles to the free list. Returns how many moved."""
        count = len(self._retired)
        self._free.extend(self._retired)
        self._retired.clear()
        return count

    def items(self) -> Iterator[Tuple[int, object]]:
        """Live (handle, object) pairs in handle order."""
        for handle in range(1, self._next_handle):
            obj = self._slots[handle]
            if obj is not None:
                yield handle, obj

    def clear(self):
        """Drop every object and forget all handles."""
        self._slots = [None] * len(self._slots)
        self._next_handle = 1
        self._free.clear()
        self._retired.clear()
        self._live = 0

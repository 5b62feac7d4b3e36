"""
Heap Diagnostics Module

Debugging and diagnostic output for the managed heap:
- dump_stats: Print collector statistics
- dump_heap: Print all heap objects
- dump_roots: Print root handles and their counts
- dump_object: Print single object details
- dump_handle_table: Print handle table state
- validate_heap: Check heap integrity, returns the number of problems found

All dumps write `[GC:...]` prefixed lines to the heap's trace stream.
"""
import sys
from typing import TYPE_CHECKING, List as PyList

from linked_lists.handles import NONE_HANDLE

if TYPE_CHECKING:
    from linked_lists.heap import Heap


class HeapDiagnostics:
    """Diagnostic dumps and validation for a Heap."""

    def __init__(self, heap: 'Heap'):
        """Initialize with reference to the Heap being inspected."""
        self.heap = heap

    # Convenience properties for commonly accessed heap attributes
    @property
    def handles(self):
        return self.heap.handles

    @property
    def stats(self):
        return self.heap.stats

    @property
    def types(self):
        return self.heap.types

    def _emit(self, tag: str, msg: str):
        print(f"[GC:{tag}] {msg}", file=self.heap.stream or sys.stderr)

    def dump_stats(self):
        """Print current collector statistics"""
        stats = self.stats
        self._emit("STATS", "=== GC Statistics ===")
        self._emit("STATS", f"total_allocations: {stats.total_allocations}, "
                            f"live_objects: {self.heap.live_objects}")
        self._emit("STATS", f"collections: {stats.collections}, marked_last: {stats.marked_last}, "
                            f"swept_last: {stats.swept_last}")
        self._emit("STATS", f"released_last: {stats.released_last}, released_total: {stats.released_total}, "
                            f"swept_total: {stats.swept_total}")

    def dump_heap(self):
        """Print every live object"""
        self._emit("HEAP", f"=== Heap Dump ({self.heap.live_objects} objects) ===")
        for handle, obj in self.handles.items():
            data_type = self.types[obj.type_id]
            self._emit("HEAP", f"handle={handle} type={data_type.name} mark={obj.mark} "
                               f"roots={self.heap.roots.get(handle, 0)}")

    def dump_roots(self):
        self._emit("ROOTS", f"=== Roots ({len(self.heap.roots)}) ===")
        for handle, count in sorted(self.heap.roots.items()):
            self._emit("ROOTS", f"handle={handle} count={count}")

    def dump_object(self, handle: int):
        """Print details of a single object"""
        obj = self.handles.get(handle)
        if obj is None:
            self._emit("OBJECT", f"handle={handle} <not live>")
            return
        data_type = self.types[obj.type_id]
        size = data_type.measure(obj.value) if data_type.measure is not None else 0
        self._emit("OBJECT", f"handle={handle} type={data_type.name} mark={obj.mark} size={size}")
        if data_type.trace is not None:
            reported: PyList[int] = []
            data_type.trace(obj.value, reported.append)
            self._emit("OBJECT", f"  references: {reported}")
        else:
            self._emit("OBJECT", f"  value: {obj.value!r}")

    def dump_handle_table(self):
        """Print handle table state"""
        table = self.handles
        self._emit("HANDLES", f"size={table.size} next={table.next_handle} live={len(table)} "
                              f"free={len(table.free_handles)} retired={len(table.retired_handles)}")

    def validate_heap(self) -> int:
        """Validate heap integrity.

        Checks:
        - every root and every traced reference is a live handle
        - every object has a registered type
        - free and retired handles are empty slots
        - the identity map only points at live boxed values

        Returns the number of problems found (0 = valid); each problem is
        also printed.
        """
        heap = self.heap
        errors = 0

        def problem(msg):
            nonlocal errors
            errors += 1
            self._emit("VALIDATE", msg)

        if heap.closed:
            return 0

        for handle in heap.roots:
            if not self.handles.is_live(handle):
                problem(f"root {handle} is not live")

        for handle, obj in self.handles.items():
            data_type = self.types.get(obj.type_id)
            if data_type is None:
                problem(f"handle {handle} has unknown type {obj.type_id}")
                continue
            if data_type.trace is None:
                continue
            reported: PyList[int] = []
            data_type.trace(obj.value, reported.append)
            for ref in reported:
                if ref == NONE_HANDLE:
                    problem(f"handle {handle} reported the none handle")
                elif not self.handles.is_live(ref):
                    problem(f"handle {handle} references dead handle {ref}")

        for handle in self.handles.free_handles + self.handles.retired_handles:
            if self.handles.is_live(handle):
                problem(f"reusable handle {handle} is still occupied")

        for value_id, handle in heap._identity.items():
            obj = self.handles.get(handle)
            if obj is None or id(obj.value) != value_id:
                problem(f"identity entry for handle {handle} is stale")

        return errors

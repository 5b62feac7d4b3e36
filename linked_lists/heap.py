"""
Managed Heap

The host environment the linked list is embedded in. Every host value is
referred to by an integer handle (see handles.py); containers whose storage
lives outside the heap register a DataType that gives the collector three
capabilities:

    trace(payload, report)  - report(handle) for every handle the payload keeps alive
    release(payload)        - free the payload's native memory
    measure(payload)        - payload size in bytes

GC Design:
- Handle-based indirection, handle 0 is "none"
- Roots are counted; a TypedData wrapper roots its handle while it is alive
- Mark-sweep with an explicit worklist (no recursion)
- Mark inversion: the mark value alternates between 0 and 1 each cycle,
  so marks never need clearing
- Birth-marking: new objects carry the current mark value
- Deferred reclamation: swept handles are retired and only reused after
  the next collection promotes them
- Safepoint: an allocation collects first once `threshold` allocations
  happened since the previous collection
"""
import sys
import weakref
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TextIO

from linked_lists.errors import HeapClosedError, HeapError, StaleHandleError
from linked_lists.handles import HandleTable, NONE_HANDLE

Report = Callable[[int], None]


@dataclass
class DataType:
    """Collector capabilities of a typed data container."""
    name: str
    trace: Optional[Callable[[Any, Report], None]] = None
    release: Optional[Callable[[Any], None]] = None
    measure: Optional[Callable[[Any], int]] = None


@dataclass
class HeapObject:
    """A handle table entry."""
    value: Any          # boxed Python object, or native payload for typed data
    type_id: int
    mark: int
    klass: Optional[type] = None  # wrapper class for typed data


@dataclass
class HeapStats:
    """Collector statistics."""
    total_allocations: int = 0
    collections: int = 0
    marked_last: int = 0
    swept_last: int = 0
    released_last: int = 0
    promoted_last: int = 0
    swept_total: int = 0
    released_total: int = 0


# Boxed Python values: nothing to trace or release
OBJECT_TYPE = DataType("object", measure=sys.getsizeof)


class Heap:
    """Handle heap with a mark-sweep collector."""

    # Constants
    GC_THRESHOLD = 10000             # Collect after this many allocations (0 disables)
    INITIAL_HANDLE_TABLE_SIZE = 1024
    MAX_TYPES = 256                  # Maximum number of registered types

    # Trace levels
    TRACE_NONE = 0        # No tracing output
    TRACE_PHASES = 1      # Collection phase boundaries
    TRACE_OPS = 2         # Major operations (register, release, shutdown)
    TRACE_DETAIL = 3      # Individual object operations
    TRACE_ALL = 4         # Everything including traced references

    TRACE_TAGS = {
        TRACE_PHASES: "PHASE",
        TRACE_OPS: "OPS",
        TRACE_DETAIL: "DETAIL",
        TRACE_ALL: "ALL",
    }

    # Built-in type IDs
    TYPE_OBJECT = 1
    TYPE_FIRST_USER = 2

    def __init__(self, threshold: Optional[int] = None, trace_level: int = TRACE_NONE,
                 stream: Optional[TextIO] = None, initial_handles: Optional[int] = None):
        self.threshold = self.GC_THRESHOLD if threshold is None else threshold
        self.trace_level = trace_level
        self.stream = stream

        self.handles = HandleTable(initial_handles or self.INITIAL_HANDLE_TABLE_SIZE)
        self.roots: Counter = Counter()
        self.stats = HeapStats()

        # Type descriptor registry
        self.types: Dict[int, DataType] = {self.TYPE_OBJECT: OBJECT_TYPE}
        self.type_ids: Dict[str, int] = {OBJECT_TYPE.name: self.TYPE_OBJECT}
        self.next_type_id = self.TYPE_FIRST_USER

        self.current_mark = 1
        self.allocs_since_collect = 0
        self.closed = False

        self._identity: Dict[int, int] = {}  # id(boxed value) -> handle
        self._wrappers = weakref.WeakValueDictionary()  # handle -> live TypedData
        self._collecting = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    def __repr__(self):
        state = "closed" if self.closed else f"{self.live_objects} objects"
        return f"<Heap {state}, {self.stats.collections} collections>"

    # ========================================================================
    # Tracing
    # ========================================================================

    def trace(self, level: int, msg: str):
        """Write a trace line when the heap's trace level is at least `level`."""
        if self.trace_level >= level:
            tag = self.TRACE_TAGS.get(level, "ALL")
            print(f"[GC:{tag}] {msg}", file=self.stream or sys.stderr)

    # ========================================================================
    # Type Registration
    # ========================================================================

    def register_type(self, data_type: DataType) -> int:
        """Register a data type, returning its type ID.

        Registering the same DataType again returns the existing ID.
        """
        type_id = self.type_ids.get(data_type.name)
        if type_id is not None:
            if self.types[type_id] is not data_type:
                raise HeapError(f"A different type named '{data_type.name}' is already registered")
            return type_id

        if len(self.types) >= self.MAX_TYPES:
            raise RuntimeError(f"Too many types registered (max {self.MAX_TYPES})")

        type_id = self.next_type_id
        self.next_type_id += 1
        self.types[type_id] = data_type
        self.type_ids[data_type.name] = type_id
        self.trace(self.TRACE_OPS, f"registered type {data_type.name} as {type_id}")
        return type_id

    def type_of(self, handle: int) -> DataType:
        return self.types[self._object(handle).type_id]

    # ========================================================================
    # Allocation
    # ========================================================================

    def check_open(self):
        if self.closed:
            raise HeapClosedError("heap has been shut down")

    def _safepoint(self):
        if (self.threshold > 0 and not self._collecting
                and self.allocs_since_collect >= self.threshold):
            self.trace(self.TRACE_PHASES, f"threshold of {self.threshold} allocations reached")
            self.collect()

    def _allocate(self, obj: HeapObject) -> int:
        self._safepoint()
        # Birth-marking: survives as if marked in the current cycle
        obj.mark = self.current_mark
        handle = self.handles.alloc(obj)
        self.stats.total_allocations += 1
        self.allocs_since_collect += 1
        self.trace(self.TRACE_DETAIL, f"alloc handle {handle} type={self.types[obj.type_id].name}")
        return handle

    def box(self, value: Any) -> int:
        """Return the handle for `value`, allocating one if needed.

        None is the none handle, typed data is its own handle, anything else
        gets one handle per object identity.
        """
        self.check_open()
        if value is None:
            return NONE_HANDLE
        if isinstance(value, TypedData):
            if value._heap is not self:
                raise HeapError(f"{type(value).__name__} belongs to a different heap")
            return value._handle

        handle = self._identity.get(id(value))
        if handle is not None:
            return handle

        handle = self._allocate(HeapObject(value, self.TYPE_OBJECT, self.current_mark))
        self._identity[id(value)] = handle
        return handle

    def handle_of(self, value: Any) -> Optional[int]:
        """The handle `value` already has, or None. Never allocates."""
        if value is None:
            return NONE_HANDLE
        if isinstance(value, TypedData):
            return value._handle if value._heap is self else None
        return self._identity.get(id(value))

    def wrap_struct(self, klass: type, data_type: DataType, payload: Any) -> int:
        """Allocate a typed data object around a native payload."""
        self.check_open()
        type_id = self.register_type(data_type)
        return self._allocate(HeapObject(payload, type_id, self.current_mark, klass))

    # ========================================================================
    # Access
    # ========================================================================

    def _object(self, handle: int) -> HeapObject:
        self.check_open()
        return self.handles.deref(handle)

    def deref(self, handle: int) -> Any:
        """Return the host value for `handle` (None for the none handle)."""
        self.check_open()
        if handle == NONE_HANDLE:
            return None
        obj = self.handles.deref(handle)
        if obj.type_id == self.TYPE_OBJECT:
            return obj.value

        wrapper = self._wrappers.get(handle)
        if wrapper is None:
            wrapper = obj.klass._from_handle(self, handle)
        return wrapper

    def get_struct(self, handle: int, data_type: DataType) -> Any:
        """Return the native payload of a typed data handle."""
        obj = self._object(handle)
        actual = self.types[obj.type_id]
        if actual is not data_type:
            raise TypeError(f"wrong argument type {actual.name} (expected {data_type.name})")
        return obj.value

    def is_live(self, handle: int) -> bool:
        return not self.closed and self.handles.is_live(handle)

    @property
    def live_objects(self) -> int:
        return len(self.handles)

    def memsize(self) -> int:
        """Total measured size of every live object."""
        self.check_open()
        total = 0
        for _, obj in self.handles.items():
            measure = self.types[obj.type_id].measure
            if measure is not None:
                total += measure(obj.value)
        return total

    # ========================================================================
    # Roots
    # ========================================================================

    def root(self, handle: int):
        self._object(handle)
        self.roots[handle] += 1

    def unroot(self, handle: int):
        """Drop one root reference. A no-op once the heap is closed."""
        if self.closed or self.roots[handle] <= 0:
            self.roots.pop(handle, None)
            return
        self.roots[handle] -= 1
        if self.roots[handle] == 0:
            del self.roots[handle]

    # ========================================================================
    # Collection
    # ========================================================================

    def collect(self) -> int:
        """Run a full collection cycle. Returns the number of objects swept.

        1. Flip mark value
        2. Promote retired handles
        3. Mark from roots
        4. Sweep and retire unmarked
        5. Update statistics
        """
        self.check_open()
        if self._collecting:
            return 0

        self._collecting = True
        try:
            self.current_mark ^= 1
            self.stats.collections += 1
            self.trace(self.TRACE_PHASES, f"collection {self.stats.collections} begin "
                                          f"(mark={self.current_mark}, live={self.live_objects})")

            promoted = self.handles.promote_retired()
            marked = self._mark()
            swept, released = self._sweep()

            self.allocs_since_collect = 0
            self.stats.promoted_last = promoted
            self.stats.marked_last = marked
            self.stats.swept_last = swept
            self.stats.released_last = released
            self.stats.swept_total += swept
            self.stats.released_total += released

            self.trace(self.TRACE_PHASES, f"collection {self.stats.collections} end "
                                          f"(marked={marked}, swept={swept}, released={released})")
            return swept
        finally:
            self._collecting = False

    def _mark(self) -> int:
        mark_value = self.current_mark
        worklist = list(self.roots)
        marked = 0

        while worklist:
            handle = worklist.pop()
            if handle == NONE_HANDLE:
                continue
            obj = self.handles.get(handle)
            if obj is None:
                raise StaleHandleError(f"trace reached handle {handle}, which is not live")
            if obj.mark == mark_value:
                continue

            obj.mark = mark_value
            marked += 1
            self.trace(self.TRACE_ALL, f"mark handle {handle}")

            tracer = self.types[obj.type_id].trace
            if tracer is not None:
                tracer(obj.value, worklist.append)

        return marked

    def _sweep(self):
        mark_value = self.current_mark
        swept = 0
        released = 0

        for handle, obj in list(self.handles.items()):
            if obj.mark == mark_value:
                continue

            data_type = self.types[obj.type_id]
            if data_type.release is not None:
                self.trace(self.TRACE_DETAIL, f"release handle {handle} type={data_type.name}")
                data_type.release(obj.value)
                released += 1
            if obj.type_id == self.TYPE_OBJECT:
                self._identity.pop(id(obj.value), None)

            self.handles.retire(handle)
            swept += 1

        return swept, released

    def shutdown(self):
        """Release every typed data object and close the heap."""
        if self.closed:
            return

        released = 0
        for handle, obj in list(self.handles.items()):
            data_type = self.types[obj.type_id]
            if data_type.release is not None:
                data_type.release(obj.value)
                released += 1

        self.handles.clear()
        self._identity.clear()
        self.roots.clear()
        self.closed = True
        self.trace(self.TRACE_OPS, f"shutdown released {released} objects")


class TypedData:
    """Python-side wrapper of a typed data heap object.

    The wrapper roots its handle for as long as it is alive; once it is
    gone, the object survives only while something traced still reports
    the handle.
    """

    data_type: DataType = None

    @classmethod
    def _from_handle(cls, heap: Heap, handle: int):
        """Rebuild a wrapper for an existing handle."""
        self = cls.__new__(cls)
        self._attach(heap, handle)
        return self

    def _attach(self, heap: Heap, handle: int):
        self._heap = heap
        self._handle = handle
        heap.root(handle)
        heap._wrappers[handle] = self
        weakref.finalize(self, heap.unroot, handle)

    def _struct(self) -> Any:
        return self._heap.get_struct(self._handle, self.data_type)

    @property
    def heap(self) -> Heap:
        return self._heap

    @property
    def handle(self) -> int:
        return self._handle

    def __copy__(self):
        raise TypeError(f"{type(self).__name__} cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError(f"{type(self).__name__} cannot be copied")

    def __reduce_ex__(self, protocol):
        raise TypeError(f"{type(self).__name__} cannot be pickled")


_default_heap: Optional[Heap] = None


def default_heap() -> Heap:
    """The heap used when none is given, created on first use."""
    global _default_heap
    if _default_heap is None or _default_heap.closed:
        _default_heap = Heap()
    return _default_heap

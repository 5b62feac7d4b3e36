"""
Tests for the managed heap.

These tests verify the host side of the tracing protocol:
- boxing and dereferencing values
- type registration and typed data access
- roots, mark inversion and sweeping
- trace output and shutdown
"""

import gc

import pytest

from linked_lists import (
    Heap, DataType, LinkedList, LINKED_LIST_TYPE, NONE_HANDLE,
    HeapError, HeapClosedError, StaleHandleError,
)


class FakeContainer:
    """Payload of a pure Python typed data used to drive the collector."""

    def __init__(self, *handles):
        self.handles = list(handles)
        self.released = False


def _trace(container, report):
    for handle in container.handles:
        report(handle)


def _release(container):
    container.released = True


CONTAINER_TYPE = DataType("container", trace=_trace, release=_release, measure=lambda c: 8 * len(c.handles))


class TestBoxing:
    """Tests for converting values to handles and back"""

    def test_none_is_none_handle(self, heap):
        assert heap.box(None) == NONE_HANDLE
        assert heap.deref(NONE_HANDLE) is None

    def test_box_round_trips_identity(self, heap):
        value = object()
        assert heap.deref(heap.box(value)) is value

    def test_same_object_same_handle(self, heap):
        """Boxing is keyed by identity"""
        value = [1]
        assert heap.box(value) == heap.box(value)
        assert heap.box([1]) != heap.box(value)

    def test_handle_of_never_allocates(self, heap):
        value = object()
        assert heap.handle_of(value) is None
        assert heap.live_objects == 0
        handle = heap.box(value)
        assert heap.handle_of(value) == handle

    def test_list_boxes_to_own_handle(self, heap):
        lst = LinkedList(heap)
        assert heap.box(lst) == lst.handle
        assert heap.deref(lst.handle) is lst

    def test_list_from_other_heap_is_rejected(self, heap):
        with Heap(threshold=0) as other:
            foreign = LinkedList(other)
            with pytest.raises(HeapError):
                LinkedList(heap).append(foreign)

    def test_stale_handle(self, heap):
        with pytest.raises(StaleHandleError):
            heap.deref(12345)


class TestTypes:
    """Tests for data type registration"""

    def test_register_is_idempotent(self, heap):
        first = heap.register_type(CONTAINER_TYPE)
        assert heap.register_type(CONTAINER_TYPE) == first
        assert first >= Heap.TYPE_FIRST_USER

    def test_conflicting_name_is_rejected(self, heap):
        heap.register_type(CONTAINER_TYPE)
        with pytest.raises(HeapError):
            heap.register_type(DataType("container"))

    def test_type_limit(self):
        with Heap(threshold=0) as heap:
            with pytest.raises(RuntimeError):
                for i in range(Heap.MAX_TYPES + 1):
                    heap.register_type(DataType(f"type{i}"))

    def test_get_struct_checks_type(self, heap):
        handle = heap.wrap_struct(object, CONTAINER_TYPE, FakeContainer())
        with pytest.raises(TypeError):
            heap.get_struct(handle, LINKED_LIST_TYPE)

    def test_failed_registration_frees_native_list(self, heap, runtime, monkeypatch):
        """A list whose type cannot be registered gives its native struct back"""
        freed = []
        free_list = runtime.free_list

        def recording_free(ptr):
            freed.append(ptr)
            free_list(ptr)

        monkeypatch.setattr(runtime, "free_list", recording_free)
        heap.register_type(DataType("linkedList"))
        with pytest.raises(HeapError):
            LinkedList(heap)
        assert len(freed) == 1
        assert heap.live_objects == 0

    def test_type_of(self, heap):
        lst = LinkedList(heap)
        assert heap.type_of(lst.handle) is LINKED_LIST_TYPE
        assert heap.type_of(heap.box("s")).name == "object"


class TestCollection:
    """Tests for mark-sweep collection"""

    def test_unrooted_values_are_swept(self, heap):
        for i in range(5):
            heap.box(object())
        assert heap.collect() == 5
        assert heap.live_objects == 0

    def test_rooted_container_keeps_references(self, heap):
        """Handles reported by trace survive, the rest are swept"""
        kept = heap.box("kept")
        heap.box("dropped")
        container = FakeContainer(kept)
        handle = heap.wrap_struct(object, CONTAINER_TYPE, container)
        heap.root(handle)

        assert heap.collect() == 1
        assert heap.deref(kept) == "kept"
        assert not container.released

    def test_unrooted_container_is_released(self, heap):
        container = FakeContainer()
        handle = heap.wrap_struct(object, CONTAINER_TYPE, container)
        heap.root(handle)
        heap.unroot(handle)
        heap.collect()
        assert container.released
        assert heap.stats.released_last == 1

    def test_roots_are_counted(self, heap):
        handle = heap.wrap_struct(object, CONTAINER_TYPE, FakeContainer())
        heap.root(handle)
        heap.root(handle)
        heap.unroot(handle)
        heap.collect()
        assert heap.is_live(handle)
        heap.unroot(handle)
        heap.collect()
        assert not heap.is_live(handle)

    def test_cycles_between_containers(self, heap):
        """Mutually referencing containers are marked once and swept together"""
        a = FakeContainer()
        b = FakeContainer()
        ha = heap.wrap_struct(object, CONTAINER_TYPE, a)
        hb = heap.wrap_struct(object, CONTAINER_TYPE, b)
        a.handles.append(hb)
        b.handles.append(ha)

        heap.root(ha)
        heap.collect()
        assert heap.stats.marked_last == 2

        heap.unroot(ha)
        heap.collect()
        assert a.released and b.released

    def test_trace_reporting_dead_handle_raises(self, heap):
        handle = heap.wrap_struct(object, CONTAINER_TYPE, FakeContainer(9999))
        heap.root(handle)
        with pytest.raises(StaleHandleError):
            heap.collect()

    def test_mark_value_alternates(self, heap):
        """Mark inversion flips the mark value each cycle"""
        first = heap.current_mark
        heap.collect()
        second = heap.current_mark
        heap.collect()
        assert second != first
        assert heap.current_mark == first

    def test_survivors_carry_current_mark(self, heap):
        lst = LinkedList(heap)
        heap.collect()
        assert heap.handles.deref(lst.handle).mark == heap.current_mark

    def test_swept_handles_reused_after_next_collection(self, heap):
        """Deferred reclamation: retired now, reusable one cycle later"""
        handle = heap.box(object())
        heap.collect()
        assert handle in heap.handles.retired_handles
        heap.collect()
        assert heap.stats.promoted_last == 1
        assert heap.box(object()) == handle

    def test_wrapper_death_unroots(self, heap):
        lst = LinkedList(heap)
        handle = lst.handle
        assert heap.roots[handle] == 1
        del lst
        gc.collect()
        assert handle not in heap.roots

    def test_memsize_counts_lists_and_values(self, heap, runtime):
        lst = LinkedList(heap)
        empty = heap.memsize()
        lst.append(1)
        assert heap.memsize() > empty
        assert lst.memsize() == runtime.memsize(lst._struct())


class TestTracing:
    """Tests for trace output"""

    def test_collection_phases_are_traced(self, traced_heap, trace_stream):
        traced_heap.box("x")
        traced_heap.collect()
        output = trace_stream.getvalue()
        assert "[GC:PHASE] collection 1 begin" in output
        assert "[GC:PHASE] collection 1 end (marked=0, swept=1, released=0)" in output
        assert "[GC:DETAIL] alloc handle 1 type=object" in output

    def test_marks_are_traced_at_all_level(self, traced_heap, trace_stream):
        lst = LinkedList(traced_heap)
        lst.append("v")
        traced_heap.collect()
        output = trace_stream.getvalue()
        assert f"[GC:ALL] mark handle {lst.handle}" in output
        assert "[GC:OPS] registered type linkedList" in output

    def test_quiet_by_default(self, trace_stream):
        with Heap(threshold=0, stream=trace_stream) as heap:
            heap.box("x")
            heap.collect()
        assert trace_stream.getvalue() == ""

    def test_threshold_is_traced(self, trace_stream):
        with Heap(threshold=2, trace_level=Heap.TRACE_PHASES, stream=trace_stream) as heap:
            for i in range(3):
                heap.box(object())
        assert "threshold of 2 allocations reached" in trace_stream.getvalue()


class TestShutdown:
    """Tests for closing a heap"""

    def test_context_manager_closes(self):
        with Heap() as heap:
            lst = LinkedList(heap)
        assert heap.closed
        with pytest.raises(HeapClosedError):
            lst.append(1)

    def test_closed_heap_rejects_new_lists(self):
        heap = Heap()
        heap.shutdown()
        with pytest.raises(HeapClosedError):
            LinkedList(heap)

    def test_shutdown_releases_containers(self):
        heap = Heap(threshold=0)
        container = FakeContainer()
        handle = heap.wrap_struct(object, CONTAINER_TYPE, container)
        heap.root(handle)
        heap.shutdown()
        assert container.released
        heap.shutdown()
        assert heap.live_objects == 0

    def test_unroot_after_shutdown_is_harmless(self):
        heap = Heap(threshold=0)
        lst = LinkedList(heap)
        heap.shutdown()
        del lst
        gc.collect()
        assert heap.closed

"""
Pytest configuration and fixtures for linked_lists tests.

Provides reusable fixtures for:
- The shared native runtime
- Isolated heaps (no automatic collection unless asked for)
- Lists built on those heaps
- Capturing collector trace output
"""

import io

import pytest

from linked_lists import Heap, LinkedList, get_runtime


@pytest.fixture
def runtime():
    """The process-wide JIT-compiled runtime."""
    return get_runtime()


@pytest.fixture
def heap():
    """
    A heap with automatic collection disabled, shut down after the test.

    Usage:
        lst = LinkedList(heap)
        heap.collect()
    """
    h = Heap(threshold=0)
    yield h
    h.shutdown()


@pytest.fixture
def trace_stream():
    return io.StringIO()


@pytest.fixture
def traced_heap(trace_stream):
    """A heap that writes every trace level to `trace_stream`."""
    h = Heap(threshold=0, trace_level=Heap.TRACE_ALL, stream=trace_stream)
    yield h
    h.shutdown()


@pytest.fixture
def make_list(heap):
    """
    Fixture that returns a function building a LinkedList on `heap`.

    Usage:
        lst = make_list(1, 2, 3)
        assert repr(lst) == "#<LinkedList {1, 2, 3}>"
    """
    def _make(*values):
        lst = LinkedList(heap)
        for value in values:
            lst.append(value)
        return lst

    return _make


class Token:
    """A value with no other references than the ones a test keeps."""

    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f"Token({self.name!r})"


@pytest.fixture
def token():
    return Token

"""Exceptions raised by the managed heap."""


class HeapError(Exception):
    """Base exception for heap errors"""
    pass


class StaleHandleError(HeapError):
    """Handle does not refer to a live heap object"""
    pass


class HeapClosedError(HeapError):
    """Heap was shut down and its native memory released"""
    pass

"""
Native runtime loader.

Compiles the module produced by RuntimeGenerator with MCJIT and exposes each
runtime function as a ctypes callable. malloc/free/abort are resolved from
the C library already loaded into the interpreter, so nodes live in the same
native heap as any other C allocation and outside the host's collector.

The runtime is compiled once per process (see get_runtime) and shared by
every Heap.
"""
import ctypes
from typing import Callable, List as PyList, Optional

from llvmlite import binding

from linked_lists.codegen.core import RuntimeGenerator

binding.initialize_native_target()
binding.initialize_native_asmprinter()

# void (*report)(i64 handle)
TRACE_CALLBACK = ctypes.CFUNCTYPE(None, ctypes.c_int64)

_C_SYMBOLS = ("malloc", "free", "abort")

# name -> (restype, argtypes)
_SIGNATURES = {
    "ll_list_new": (ctypes.c_void_p, []),
    "ll_list_append": (None, [ctypes.c_void_p, ctypes.c_int64]),
    "ll_list_prepend": (None, [ctypes.c_void_p, ctypes.c_int64]),
    "ll_list_shift": (ctypes.c_int64, [ctypes.c_void_p]),
    "ll_list_pop": (ctypes.c_int64, [ctypes.c_void_p]),
    "ll_list_mark": (None, [ctypes.c_void_p, TRACE_CALLBACK]),
    "ll_list_each": (None, [ctypes.c_void_p, TRACE_CALLBACK]),
    "ll_list_length": (ctypes.c_int64, [ctypes.c_void_p]),
    "ll_list_clear": (None, [ctypes.c_void_p]),
    "ll_list_free": (None, [ctypes.c_void_p]),
    "ll_list_memsize": (ctypes.c_int64, [ctypes.c_void_p]),
    "ll_live_nodes": (ctypes.c_int64, []),
}


def _register_c_symbols():
    """Make the C allocator visible to the JIT linker."""
    libc = ctypes.CDLL(None)
    for name in _C_SYMBOLS:
        address = ctypes.cast(getattr(libc, name), ctypes.c_void_p).value
        binding.add_symbol(name, address)


class NativeRuntime:
    """JIT-compiled linked list runtime.

    Pointers cross the boundary as plain ints (c_void_p); value handles as
    c_int64.
    """

    def __init__(self, generator: Optional[RuntimeGenerator] = None):
        self.generator = generator or RuntimeGenerator()
        self._functions = {}

        _register_c_symbols()
        mod = self.generator.parse()

        target = binding.Target.from_default_triple()
        # Kept alive for as long as the engine is
        self.target_machine = target.create_target_machine()
        mod.data_layout = str(self.target_machine.target_data)
        self.engine = binding.create_mcjit_compiler(mod, self.target_machine)
        self.engine.finalize_object()
        self.engine.run_static_constructors()

        for name, (restype, argtypes) in _SIGNATURES.items():
            address = self.engine.get_function_address(name)
            prototype = ctypes.CFUNCTYPE(restype, *argtypes)
            self._functions[name] = prototype(address)

    # ========================================================================
    # List operations
    # ========================================================================

    def new_list(self) -> int:
        return self._functions["ll_list_new"]()

    def append(self, ptr: int, handle: int):
        self._functions["ll_list_append"](ptr, handle)

    def prepend(self, ptr: int, handle: int):
        self._functions["ll_list_prepend"](ptr, handle)

    def shift(self, ptr: int) -> int:
        return self._functions["ll_list_shift"](ptr)

    def pop(self, ptr: int) -> int:
        return self._functions["ll_list_pop"](ptr)

    def length(self, ptr: int) -> int:
        return self._functions["ll_list_length"](ptr)

    def clear(self, ptr: int):
        self._functions["ll_list_clear"](ptr)

    def free_list(self, ptr: int):
        self._functions["ll_list_free"](ptr)

    def memsize(self, ptr: int) -> int:
        return self._functions["ll_list_memsize"](ptr)

    def live_nodes(self) -> int:
        """Number of nodes currently allocated by the runtime (all lists)."""
        return self._functions["ll_live_nodes"]()

    def mark(self, ptr: int, report: Callable[[int], None]):
        """Call report(handle) for every non-none handle, head to tail.

        Handles are gathered natively first and reported from Python, so an
        exception raised by `report` reaches the caller.
        """
        collected = []
        callback = TRACE_CALLBACK(collected.append)
        self._functions["ll_list_mark"](ptr, callback)
        for handle in collected:
            report(handle)

    def handles(self, ptr: int) -> PyList[int]:
        """Snapshot of every handle in the list, none included."""
        collected = []
        callback = TRACE_CALLBACK(collected.append)
        self._functions["ll_list_each"](ptr, callback)
        return collected


_runtime: Optional[NativeRuntime] = None


def get_runtime() -> NativeRuntime:
    """The process-wide runtime, compiled on first use."""
    global _runtime
    if _runtime is None:
        _runtime = NativeRuntime()
    return _runtime

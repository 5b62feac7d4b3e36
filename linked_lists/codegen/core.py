"""
Linked List Runtime Generator

Builds the LLVM module that holds the native half of the linked list:
the node and list structs, the checked allocator and every list operation.
Node memory is owned by this runtime (malloc/free), never by the host heap.

Module layout:
    %ll_node = type { %ll_node*, i64 }    ; next, value handle
    %ll_list = type { %ll_node* }         ; head

    @ll_live_nodes                        ; nodes currently allocated

Value handles are opaque i64s; handle 0 is the "none" sentinel.
"""
from typing import Optional
from llvmlite import ir, binding

from linked_lists.codegen.node import NodeGenerator
from linked_lists.codegen.list import ListGenerator


class RuntimeBuildError(RuntimeError):
    """The generated runtime failed LLVM verification"""
    pass


class RuntimeGenerator:
    """Generates the LLVM IR for the native linked list runtime"""

    MODULE_NAME = "linked_lists"

    # Field indices
    NODE_NEXT = 0
    NODE_VALUE = 1
    LIST_HEAD = 0

    # Value handle reserved for "none"
    NONE_HANDLE = 0

    def __init__(self, triple: Optional[str] = None):
        # Fresh context so identified struct types never clash between modules
        self.context = ir.Context()
        self.module = ir.Module(name=self.MODULE_NAME, context=self.context)
        self.module.triple = triple or binding.get_default_triple()

        # Common LLVM types
        self.i1 = ir.IntType(1)
        self.i8 = ir.IntType(8)
        self.i32 = ir.IntType(32)
        self.i64 = ir.IntType(64)
        self.void = ir.VoidType()
        self.i8_ptr = self.i8.as_pointer()

        self.node_struct = None
        self.node_ptr = None
        self.list_struct = None
        self.list_ptr = None
        self.trace_fn_ptr = None

        self.nodes = NodeGenerator(self)
        self.lists = ListGenerator(self)

        self._generated = False

    def generate(self) -> ir.Module:
        """Generate the complete runtime module (idempotent)."""
        if self._generated:
            return self.module

        self._create_types()
        self._declare_builtins()
        self._create_globals()
        self._declare_alloc()

        self.nodes.create_node_helpers()
        self.lists.create_list_helpers()

        self._implement_alloc()
        self.nodes.implement_node_helpers()
        self.lists.implement_list_helpers()

        self._generated = True
        return self.module

    def _create_types(self):
        """Create the node and list struct types."""
        self.node_struct = self.context.get_identified_type("ll_node")
        self.node_ptr = self.node_struct.as_pointer()
        # next first so a node pointer is also a pointer to its link
        self.node_struct.set_body(self.node_ptr, self.i64)

        self.list_struct = self.context.get_identified_type("ll_list")
        self.list_struct.set_body(self.node_ptr)
        self.list_ptr = self.list_struct.as_pointer()

        # void (*report)(i64 handle)
        self.trace_fn_ptr = ir.FunctionType(self.void, [self.i64]).as_pointer()

    def _declare_builtins(self):
        """Declare the C library functions the runtime links against."""
        malloc_ty = ir.FunctionType(self.i8_ptr, [self.i64])
        self.malloc = ir.Function(self.module, malloc_ty, name="malloc")

        free_ty = ir.FunctionType(self.void, [self.i8_ptr])
        self.free = ir.Function(self.module, free_ty, name="free")

        abort_ty = ir.FunctionType(self.void, [])
        self.abort = ir.Function(self.module, abort_ty, name="abort")
        self.abort.attributes.add("noreturn")

    def _create_globals(self):
        """Create runtime globals."""
        self.live_nodes = ir.GlobalVariable(self.module, self.i64, name="ll_live_node_count")
        self.live_nodes.initializer = ir.Constant(self.i64, 0)
        self.live_nodes.linkage = 'internal'

    def _declare_alloc(self):
        # ll_alloc(size: i64) -> i8*, aborts instead of returning NULL
        alloc_ty = ir.FunctionType(self.i8_ptr, [self.i64])
        self.alloc = ir.Function(self.module, alloc_ty, name="ll_alloc")
        self.alloc.linkage = 'internal'

    def _implement_alloc(self):
        """Implement ll_alloc: malloc that treats exhaustion as fatal."""
        func = self.alloc
        func.args[0].name = "size"

        entry = func.append_basic_block("entry")
        oom = func.append_basic_block("oom")
        ok = func.append_basic_block("ok")

        builder = ir.IRBuilder(entry)
        raw = builder.call(self.malloc, [func.args[0]])
        is_null = builder.icmp_unsigned("==", raw, ir.Constant(self.i8_ptr, None))
        builder.cbranch(is_null, oom, ok)

        # Out of memory is not recoverable
        builder.position_at_end(oom)
        builder.call(self.abort, [])
        builder.unreachable()

        builder.position_at_end(ok)
        builder.ret(raw)

    # ========================================================================
    # Builder Helpers (used by the node and list generators)
    # ========================================================================

    def sizeof(self, builder: ir.IRBuilder, struct: ir.Type) -> ir.Value:
        """Size in bytes of `struct`, via the null-GEP idiom."""
        null = ir.Constant(struct.as_pointer(), None)
        end = builder.gep(null, [ir.Constant(self.i32, 1)])
        return builder.ptrtoint(end, self.i64)

    def field_ptr(self, builder: ir.IRBuilder, ptr: ir.Value, index: int) -> ir.Value:
        return builder.gep(ptr, [ir.Constant(self.i32, 0), ir.Constant(self.i32, index)], inbounds=True)

    def is_null(self, builder: ir.IRBuilder, ptr: ir.Value) -> ir.Value:
        return builder.icmp_unsigned("==", ptr, ir.Constant(ptr.type, None))

    def bump_live_nodes(self, builder: ir.IRBuilder, delta: int):
        count = builder.load(self.live_nodes)
        builder.store(builder.add(count, ir.Constant(self.i64, delta)), self.live_nodes)

    # ========================================================================
    # Output
    # ========================================================================

    def get_ir(self) -> str:
        """Get LLVM IR as string"""
        return str(self.generate())

    def parse(self) -> binding.ModuleRef:
        """Parse and verify the generated IR."""
        llvm_ir = self.get_ir()
        try:
            mod = binding.parse_assembly(llvm_ir)
            mod.verify()
        except RuntimeError as e:
            raise RuntimeBuildError(f"LLVM IR error in linked list runtime: {e}") from e
        return mod

    def compile_to_object(self, output_path: str):
        """Compile module to object file"""
        mod = self.parse()

        target = binding.Target.from_default_triple()
        target_machine = target.create_target_machine()

        with open(output_path, "wb") as f:
            f.write(target_machine.emit_object(mod))

"""
Node generator for the linked list runtime.

Node struct:
    Field 0: next (ll_node*) - owned successor, NULL at the tail
    Field 1: value (i64)     - opaque value handle, 0 for none

A node is owned by exactly one predecessor, or by the list for the head.
Every node allocation and release goes through this module so that the
live-node counter stays exact.
"""
from typing import TYPE_CHECKING
from llvmlite import ir

if TYPE_CHECKING:
    from linked_lists.codegen.core import RuntimeGenerator


class NodeGenerator:
    """Generates node construction and release for the runtime."""

    def __init__(self, runtime: 'RuntimeGenerator'):
        """Initialize with reference to parent RuntimeGenerator instance."""
        self.rt = runtime

    def create_node_helpers(self):
        """Declare node functions."""
        rt = self.rt

        # ll_node_new(value: i64) -> ll_node*
        node_new_ty = ir.FunctionType(rt.node_ptr, [rt.i64])
        rt.node_new = ir.Function(rt.module, node_new_ty, name="ll_node_new")

        # ll_node_free(node: ll_node*) -> void (does not touch the successor)
        node_free_ty = ir.FunctionType(rt.void, [rt.node_ptr])
        rt.node_free = ir.Function(rt.module, node_free_ty, name="ll_node_free")
        rt.node_free.linkage = 'internal'

        # ll_live_nodes() -> i64
        live_nodes_ty = ir.FunctionType(rt.i64, [])
        rt.live_nodes_fn = ir.Function(rt.module, live_nodes_ty, name="ll_live_nodes")

    def implement_node_helpers(self):
        self._implement_node_new()
        self._implement_node_free()
        self._implement_live_nodes()

    def _implement_node_new(self):
        """Implement ll_node_new: a node holding `value` with no successor."""
        rt = self.rt
        func = rt.node_new
        func.args[0].name = "value"

        builder = ir.IRBuilder(func.append_basic_block("entry"))

        size = rt.sizeof(builder, rt.node_struct)
        raw = builder.call(rt.alloc, [size])
        node = builder.bitcast(raw, rt.node_ptr)

        builder.store(ir.Constant(rt.node_ptr, None), rt.field_ptr(builder, node, rt.NODE_NEXT))
        builder.store(func.args[0], rt.field_ptr(builder, node, rt.NODE_VALUE))

        rt.bump_live_nodes(builder, 1)
        builder.ret(node)

    def _implement_node_free(self):
        rt = self.rt
        func = rt.node_free
        func.args[0].name = "node"

        builder = ir.IRBuilder(func.append_basic_block("entry"))
        builder.call(rt.free, [builder.bitcast(func.args[0], rt.i8_ptr)])
        rt.bump_live_nodes(builder, -1)
        builder.ret_void()

    def _implement_live_nodes(self):
        rt = self.rt
        builder = ir.IRBuilder(rt.live_nodes_fn.append_basic_block("entry"))
        builder.ret(builder.load(rt.live_nodes))

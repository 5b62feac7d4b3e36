"""
List generator for the linked list runtime.

List struct:
    Field 0: head (ll_node*) - first node, NULL when empty

The list owns its whole chain. Nodes are only ever linked at the tail
(append) or at the head (prepend), so the chain cannot form a cycle and
every walk below terminates.

There is no tail pointer: append scans for the tail.

Teardown (ll_list_clear / ll_list_free) is an iterative loop so that very
long chains never recurse.
"""
from typing import TYPE_CHECKING
from llvmlite import ir

if TYPE_CHECKING:
    from linked_lists.codegen.core import RuntimeGenerator


class ListGenerator:
    """Generates the list type operations for the runtime."""

    def __init__(self, runtime: 'RuntimeGenerator'):
        """Initialize with reference to parent RuntimeGenerator instance."""
        self.rt = runtime

    def create_list_helpers(self):
        """Declare list functions."""
        rt = self.rt
        list_ptr = rt.list_ptr
        i64 = rt.i64
        void = rt.void

        # ll_list_new() -> ll_list*
        rt.list_new = ir.Function(rt.module, ir.FunctionType(list_ptr, []), name="ll_list_new")

        # ll_list_append(list: ll_list*, value: i64) -> void
        rt.list_append = ir.Function(rt.module, ir.FunctionType(void, [list_ptr, i64]),
                                     name="ll_list_append")

        # ll_list_prepend(list: ll_list*, value: i64) -> void
        rt.list_prepend = ir.Function(rt.module, ir.FunctionType(void, [list_ptr, i64]),
                                      name="ll_list_prepend")

        # ll_list_shift(list: ll_list*) -> i64 (0 when empty)
        rt.list_shift = ir.Function(rt.module, ir.FunctionType(i64, [list_ptr]), name="ll_list_shift")

        # ll_list_pop(list: ll_list*) -> i64 (0 when empty)
        rt.list_pop = ir.Function(rt.module, ir.FunctionType(i64, [list_ptr]), name="ll_list_pop")

        # ll_list_mark(list: ll_list*, report: void(i64)*) -> void
        # Reports every non-none handle, head to tail
        rt.list_mark = ir.Function(rt.module, ir.FunctionType(void, [list_ptr, rt.trace_fn_ptr]),
                                   name="ll_list_mark")

        # ll_list_each(list: ll_list*, report: void(i64)*) -> void
        # Reports every handle including none, head to tail
        rt.list_each = ir.Function(rt.module, ir.FunctionType(void, [list_ptr, rt.trace_fn_ptr]),
                                   name="ll_list_each")

        # ll_list_length(list: ll_list*) -> i64
        rt.list_length = ir.Function(rt.module, ir.FunctionType(i64, [list_ptr]), name="ll_list_length")

        # ll_list_clear(list: ll_list*) -> void
        rt.list_clear = ir.Function(rt.module, ir.FunctionType(void, [list_ptr]), name="ll_list_clear")

        # ll_list_free(list: ll_list*) -> void
        rt.list_free = ir.Function(rt.module, ir.FunctionType(void, [list_ptr]), name="ll_list_free")

        # ll_list_memsize(list: ll_list*) -> i64 (struct plus every node, in bytes)
        rt.list_memsize = ir.Function(rt.module, ir.FunctionType(i64, [list_ptr]), name="ll_list_memsize")

    def implement_list_helpers(self):
        self._implement_list_new()
        self._implement_list_append()
        self._implement_list_prepend()
        self._implement_list_shift()
        self._implement_list_pop()
        self._implement_list_walk(self.rt.list_mark, skip_none=True)
        self._implement_list_walk(self.rt.list_each, skip_none=False)
        self._implement_list_length()
        self._implement_list_clear()
        self._implement_list_free()
        self._implement_list_memsize()

    def _implement_list_new(self):
        """Implement ll_list_new: an empty list."""
        rt = self.rt
        builder = ir.IRBuilder(rt.list_new.append_basic_block("entry"))

        raw = builder.call(rt.alloc, [rt.sizeof(builder, rt.list_struct)])
        lst = builder.bitcast(raw, rt.list_ptr)
        builder.store(ir.Constant(rt.node_ptr, None), rt.field_ptr(builder, lst, rt.LIST_HEAD))
        builder.ret(lst)

    def _implement_list_append(self):
        """Implement ll_list_append: link a new node after the current tail.

        Empty list: the new node becomes the head.
        Otherwise: walk from the head until next is NULL and link there.
        """
        rt = self.rt
        func = rt.list_append
        func.args[0].name = "list"
        func.args[1].name = "value"

        entry = func.append_basic_block("entry")
        set_head = func.append_basic_block("set_head")
        scan = func.append_basic_block("scan")
        advance = func.append_basic_block("advance")
        link = func.append_basic_block("link")

        builder = ir.IRBuilder(entry)
        cursor = builder.alloca(rt.node_ptr, name="cursor")

        node = builder.call(rt.node_new, [func.args[1]])
        head_ptr = rt.field_ptr(builder, func.args[0], rt.LIST_HEAD)
        head = builder.load(head_ptr)
        builder.store(head, cursor)
        builder.cbranch(rt.is_null(builder, head), set_head, scan)

        builder.position_at_end(set_head)
        builder.store(node, head_ptr)
        builder.ret_void()

        # Find the tail
        builder.position_at_end(scan)
        current = builder.load(cursor)
        next_node = builder.load(rt.field_ptr(builder, current, rt.NODE_NEXT))
        builder.cbranch(rt.is_null(builder, next_node), link, advance)

        builder.position_at_end(advance)
        builder.store(next_node, cursor)
        builder.branch(scan)

        builder.position_at_end(link)
        builder.store(node, rt.field_ptr(builder, current, rt.NODE_NEXT))
        builder.ret_void()

    def _implement_list_prepend(self):
        """Implement ll_list_prepend: the new node takes over the old head."""
        rt = self.rt
        func = rt.list_prepend
        func.args[0].name = "list"
        func.args[1].name = "value"

        builder = ir.IRBuilder(func.append_basic_block("entry"))

        node = builder.call(rt.node_new, [func.args[1]])
        head_ptr = rt.field_ptr(builder, func.args[0], rt.LIST_HEAD)
        builder.store(builder.load(head_ptr), rt.field_ptr(builder, node, rt.NODE_NEXT))
        builder.store(node, head_ptr)
        builder.ret_void()

    def _implement_list_shift(self):
        """Implement ll_list_shift: unlink the head, free it, return its value."""
        rt = self.rt
        func = rt.list_shift
        func.args[0].name = "list"

        entry = func.append_basic_block("entry")
        empty = func.append_basic_block("empty")
        unlink = func.append_basic_block("unlink")

        builder = ir.IRBuilder(entry)
        head_ptr = rt.field_ptr(builder, func.args[0], rt.LIST_HEAD)
        head = builder.load(head_ptr)
        builder.cbranch(rt.is_null(builder, head), empty, unlink)

        builder.position_at_end(empty)
        builder.ret(ir.Constant(rt.i64, rt.NONE_HANDLE))

        builder.position_at_end(unlink)
        value = builder.load(rt.field_ptr(builder, head, rt.NODE_VALUE))
        builder.store(builder.load(rt.field_ptr(builder, head, rt.NODE_NEXT)), head_ptr)
        builder.call(rt.node_free, [head])
        builder.ret(value)

    def _implement_list_pop(self):
        """Implement ll_list_pop: unlink the tail, free it, return its value.

        Single node: the list becomes empty.
        Otherwise: walk until the successor is the tail, then cut it off.
        """
        rt = self.rt
        func = rt.list_pop
        func.args[0].name = "list"

        entry = func.append_basic_block("entry")
        empty = func.append_basic_block("empty")
        non_empty = func.append_basic_block("non_empty")
        single = func.append_basic_block("single")
        scan = func.append_basic_block("scan")
        advance = func.append_basic_block("advance")
        detach = func.append_basic_block("detach")

        builder = ir.IRBuilder(entry)
        cursor = builder.alloca(rt.node_ptr, name="cursor")
        head_ptr = rt.field_ptr(builder, func.args[0], rt.LIST_HEAD)
        head = builder.load(head_ptr)
        builder.store(head, cursor)
        builder.cbranch(rt.is_null(builder, head), empty, non_empty)

        builder.position_at_end(empty)
        builder.ret(ir.Constant(rt.i64, rt.NONE_HANDLE))

        builder.position_at_end(non_empty)
        second = builder.load(rt.field_ptr(builder, head, rt.NODE_NEXT))
        builder.cbranch(rt.is_null(builder, second), single, scan)

        builder.position_at_end(single)
        single_value = builder.load(rt.field_ptr(builder, head, rt.NODE_VALUE))
        builder.store(ir.Constant(rt.node_ptr, None), head_ptr)
        builder.call(rt.node_free, [head])
        builder.ret(single_value)

        # current always has a successor here
        builder.position_at_end(scan)
        current = builder.load(cursor)
        next_node = builder.load(rt.field_ptr(builder, current, rt.NODE_NEXT))
        after_next = builder.load(rt.field_ptr(builder, next_node, rt.NODE_NEXT))
        builder.cbranch(rt.is_null(builder, after_next), detach, advance)

        builder.position_at_end(advance)
        builder.store(next_node, cursor)
        builder.branch(scan)

        builder.position_at_end(detach)
        tail_value = builder.load(rt.field_ptr(builder, next_node, rt.NODE_VALUE))
        builder.store(ir.Constant(rt.node_ptr, None), rt.field_ptr(builder, current, rt.NODE_NEXT))
        builder.call(rt.node_free, [next_node])
        builder.ret(tail_value)

    def _implement_list_walk(self, func: ir.Function, skip_none: bool):
        """Implement a head-to-tail walk that calls report(value) per node.

        With skip_none the none handle is never reported (the trace hook);
        without it every node is reported (iteration and rendering).
        """
        rt = self.rt
        func.args[0].name = "list"
        func.args[1].name = "report"

        entry = func.append_basic_block("entry")
        loop = func.append_basic_block("loop")
        body = func.append_basic_block("body")
        report = func.append_basic_block("report")
        advance = func.append_basic_block("advance")
        done = func.append_basic_block("done")

        builder = ir.IRBuilder(entry)
        cursor = builder.alloca(rt.node_ptr, name="cursor")
        builder.store(builder.load(rt.field_ptr(builder, func.args[0], rt.LIST_HEAD)), cursor)
        builder.branch(loop)

        builder.position_at_end(loop)
        current = builder.load(cursor)
        builder.cbranch(rt.is_null(builder, current), done, body)

        builder.position_at_end(body)
        value = builder.load(rt.field_ptr(builder, current, rt.NODE_VALUE))
        if skip_none:
            present = builder.icmp_unsigned("!=", value, ir.Constant(rt.i64, rt.NONE_HANDLE))
            builder.cbranch(present, report, advance)
        else:
            builder.branch(report)

        builder.position_at_end(report)
        builder.call(func.args[1], [value])
        builder.branch(advance)

        builder.position_at_end(advance)
        builder.store(builder.load(rt.field_ptr(builder, current, rt.NODE_NEXT)), cursor)
        builder.branch(loop)

        builder.position_at_end(done)
        builder.ret_void()

    def _implement_list_length(self):
        """Implement ll_list_length: count nodes from the head."""
        rt = self.rt
        func = rt.list_length
        func.args[0].name = "list"

        entry = func.append_basic_block("entry")
        loop = func.append_basic_block("loop")
        body = func.append_basic_block("body")
        done = func.append_basic_block("done")

        builder = ir.IRBuilder(entry)
        cursor = builder.alloca(rt.node_ptr, name="cursor")
        count = builder.alloca(rt.i64, name="count")
        builder.store(builder.load(rt.field_ptr(builder, func.args[0], rt.LIST_HEAD)), cursor)
        builder.store(ir.Constant(rt.i64, 0), count)
        builder.branch(loop)

        builder.position_at_end(loop)
        current = builder.load(cursor)
        builder.cbranch(rt.is_null(builder, current), done, body)

        builder.position_at_end(body)
        builder.store(builder.add(builder.load(count), ir.Constant(rt.i64, 1)), count)
        builder.store(builder.load(rt.field_ptr(builder, current, rt.NODE_NEXT)), cursor)
        builder.branch(loop)

        builder.position_at_end(done)
        builder.ret(builder.load(count))

    def _implement_list_clear(self):
        """Implement ll_list_clear: free every node, head first, then empty the list.

        The successor is read before its owner is freed.
        """
        rt = self.rt
        func = rt.list_clear
        func.args[0].name = "list"

        entry = func.append_basic_block("entry")
        loop = func.append_basic_block("loop")
        body = func.append_basic_block("body")
        done = func.append_basic_block("done")

        builder = ir.IRBuilder(entry)
        cursor = builder.alloca(rt.node_ptr, name="cursor")
        head_ptr = rt.field_ptr(builder, func.args[0], rt.LIST_HEAD)
        builder.store(builder.load(head_ptr), cursor)
        builder.branch(loop)

        builder.position_at_end(loop)
        current = builder.load(cursor)
        builder.cbranch(rt.is_null(builder, current), done, body)

        builder.position_at_end(body)
        next_node = builder.load(rt.field_ptr(builder, current, rt.NODE_NEXT))
        builder.call(rt.node_free, [current])
        builder.store(next_node, cursor)
        builder.branch(loop)

        builder.position_at_end(done)
        builder.store(ir.Constant(rt.node_ptr, None), head_ptr)
        builder.ret_void()

    def _implement_list_free(self):
        """Implement ll_list_free: release the chain, then the struct itself."""
        rt = self.rt
        func = rt.list_free
        func.args[0].name = "list"

        builder = ir.IRBuilder(func.append_basic_block("entry"))
        builder.call(rt.list_clear, [func.args[0]])
        builder.call(rt.free, [builder.bitcast(func.args[0], rt.i8_ptr)])
        builder.ret_void()

    def _implement_list_memsize(self):
        rt = self.rt
        func = rt.list_memsize
        func.args[0].name = "list"

        builder = ir.IRBuilder(func.append_basic_block("entry"))
        length = builder.call(rt.list_length, [func.args[0]])
        nodes = builder.mul(length, rt.sizeof(builder, rt.node_struct))
        builder.ret(builder.add(nodes, rt.sizeof(builder, rt.list_struct)))

"""
Tests for the LinkedList operations.

These tests verify the list contract:
- append/prepend ordering as observed through shift
- shift on an empty list
- chaining and the << / >> aliases
- inspect rendering
- pop, clear, len and iteration
"""

import copy
import pickle

import pytest

from linked_lists import LinkedList


class TestShiftOrder:
    """Tests for the order values come back out"""

    def test_appended_values_shift_in_order(self, make_list):
        """Appends come back first-in first-out, then None forever"""
        lst = make_list("a", "b", "c", "d")
        assert [lst.shift() for _ in range(4)] == ["a", "b", "c", "d"]
        assert lst.shift() is None
        assert lst.shift() is None

    def test_prepended_values_shift_in_reverse(self, heap):
        """Prepends come back last-in first-out"""
        lst = LinkedList(heap)
        for value in (1, 2, 3, 4):
            lst.prepend(value)
        assert [lst.shift() for _ in range(4)] == [4, 3, 2, 1]
        assert lst.shift() is None

    def test_shift_on_fresh_list_is_none(self, heap):
        """A freshly allocated list shifts None"""
        assert LinkedList(heap).shift() is None

    def test_mixed_append_and_prepend(self, heap):
        """Prepend goes in front of appends"""
        lst = LinkedList(heap)
        lst.append(2).append(3).prepend(1).append(4).prepend(0)
        assert list(lst) == [0, 1, 2, 3, 4]

    def test_shift_until_empty_then_reuse(self, make_list):
        """A list emptied by shift accepts new values"""
        lst = make_list(1)
        assert lst.shift() == 1
        assert len(lst) == 0
        lst.append(2)
        assert lst.shift() == 2
        assert lst.shift() is None

    def test_none_is_stored_like_any_value(self, make_list):
        """None in the middle of the list is kept and shifted back out"""
        lst = make_list(1, None, 3)
        assert len(lst) == 3
        assert lst.shift() == 1
        assert lst.shift() is None
        assert len(lst) == 1
        assert lst.shift() == 3

    def test_same_object_appended_twice(self, make_list):
        """One object can sit in several nodes"""
        item = ["shared"]
        lst = make_list(item, item)
        assert lst.shift() is item
        assert lst.shift() is item

    def test_shift_returns_identical_objects(self, make_list):
        """Values are stored by reference, never copied"""
        payload = {"key": [1, 2]}
        lst = make_list(payload)
        assert lst.shift() is payload


class TestChaining:
    """Tests for chaining and operator aliases"""

    def test_append_returns_self(self, heap):
        """append returns the list itself"""
        lst = LinkedList(heap)
        assert lst.append(1) is lst

    def test_prepend_returns_self(self, heap):
        """prepend returns the list itself"""
        lst = LinkedList(heap)
        assert lst.prepend(1) is lst

    def test_chained_appends_equal_sequential_calls(self, heap):
        """list.append(a).append(b) equals two separate calls"""
        chained = LinkedList(heap).append("a").append("b")
        sequential = LinkedList(heap)
        sequential.append("a")
        sequential.append("b")
        assert list(chained) == list(sequential) == ["a", "b"]

    def test_lshift_appends(self, heap):
        """<< is append"""
        lst = LinkedList(heap)
        lst << 1 << 2 << 3
        assert list(lst) == [1, 2, 3]

    def test_rshift_prepends(self, heap):
        """>> is prepend"""
        lst = LinkedList(heap)
        lst >> 1 >> 2 >> 3
        assert list(lst) == [3, 2, 1]


class TestInspect:
    """Tests for the readable rendering"""

    def test_empty_list(self, heap):
        """Empty list renders with empty braces"""
        assert LinkedList(heap).inspect() == "#<LinkedList {}>"

    def test_appended_integers(self, make_list):
        """Values render head to tail, comma separated"""
        assert make_list(1, 2, 3).inspect() == "#<LinkedList {1, 2, 3}>"

    def test_repr_matches_inspect(self, make_list):
        """repr() is inspect()"""
        lst = make_list("x", None)
        assert repr(lst) == lst.inspect() == "#<LinkedList {'x', None}>"

    def test_values_use_their_own_repr(self, make_list, token):
        """Each value is rendered with its own repr"""
        assert repr(make_list(token("t"), 1.5)) == "#<LinkedList {Token('t'), 1.5}>"

    def test_subclass_name_is_used(self, heap):
        """The rendering names the actual class"""
        class Queue(LinkedList):
            pass

        assert repr(Queue(heap).append(1)) == "#<Queue {1}>"

    def test_nested_list(self, make_list):
        """A nested list renders inline"""
        inner = make_list(1, 2)
        outer = make_list(inner, 3)
        assert repr(outer) == "#<LinkedList {#<LinkedList {1, 2}>, 3}>"

    def test_self_containing_list(self, make_list):
        """A list holding itself renders the inner occurrence as ..."""
        lst = make_list(1)
        lst.append(lst)
        assert repr(lst) == "#<LinkedList {1, ...}>"

    def test_inspect_does_not_mutate(self, make_list):
        """Rendering leaves the list unchanged"""
        lst = make_list(1, 2)
        repr(lst)
        repr(lst)
        assert list(lst) == [1, 2]


class TestPopAndClear:
    """Tests for removing from the tail and clearing"""

    def test_pop_removes_tail(self, make_list):
        """pop returns values last to first"""
        lst = make_list(1, 2, 3)
        assert lst.pop() == 3
        assert lst.pop() == 2
        assert list(lst) == [1]

    def test_pop_single_node(self, make_list):
        """Popping the only node empties the list"""
        lst = make_list("only")
        assert lst.pop() == "only"
        assert len(lst) == 0
        assert lst.shift() is None

    def test_pop_empty_is_none(self, heap):
        """pop on an empty list returns None"""
        assert LinkedList(heap).pop() is None

    def test_clear_empties_and_returns_self(self, make_list):
        """clear drops every node"""
        lst = make_list(1, 2, 3)
        assert lst.clear() is lst
        assert len(lst) == 0
        assert repr(lst) == "#<LinkedList {}>"
        lst.append(4)
        assert list(lst) == [4]


class TestSizeAndIteration:
    """Tests for len, truthiness and iteration"""

    def test_len_tracks_operations(self, heap):
        """len counts nodes after every kind of mutation"""
        lst = LinkedList(heap)
        assert len(lst) == 0
        lst.append(1).prepend(0).append(2)
        assert len(lst) == 3
        lst.shift()
        lst.pop()
        assert len(lst) == 1

    def test_truthiness(self, heap):
        """An empty list is falsy"""
        lst = LinkedList(heap)
        assert not lst
        lst.append(0)
        assert lst

    def test_iteration_is_head_to_tail(self, make_list):
        """Iterating does not consume"""
        lst = make_list(3, 1, 2)
        assert list(lst) == [3, 1, 2]
        assert list(lst) == [3, 1, 2]

    def test_long_list(self, heap):
        """A few thousand nodes keep their order"""
        lst = LinkedList(heap)
        for i in range(2000):
            lst.prepend(i)
        assert len(lst) == 2000
        assert lst.shift() == 1999
        assert lst.pop() == 0


class TestNoCopies:
    """Tests that a list can only be created empty"""

    def test_copy_is_rejected(self, make_list):
        with pytest.raises(TypeError):
            copy.copy(make_list(1))

    def test_deepcopy_is_rejected(self, make_list):
        with pytest.raises(TypeError):
            copy.deepcopy(make_list(1))

    def test_pickle_is_rejected(self, make_list):
        with pytest.raises(TypeError):
            pickle.dumps(make_list(1))


class TestDefaultHeap:
    """Tests for lists created without an explicit heap"""

    def test_default_heap_is_shared(self):
        """Lists without a heap share the default one"""
        a = LinkedList()
        b = LinkedList()
        assert a.heap is b.heap
        a << 1
        b << a
        assert b.shift() is a

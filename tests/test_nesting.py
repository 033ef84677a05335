"""
Tests for template-level sub-phase nesting rules.
"""

from orbit.nesting import (
    REFUSE_CHILD_HAS_CHILD,
    REFUSE_PARENT_IS_CHILD,
    REFUSE_PARENT_OCCUPIED,
    REFUSE_SELF,
    children_of,
    nest,
    nest_refusal,
    unnest,
)


class TestNestRefusal:
    """Test the nesting guard."""

    def test_allowed(self):
        assert nest_refusal({}, "child", "parent") is None

    def test_self(self):
        assert nest_refusal({}, "p", "p") == REFUSE_SELF

    def test_parent_is_already_a_child(self):
        assert nest_refusal({"parent": "grandparent"}, "child", "parent") == REFUSE_PARENT_IS_CHILD

    def test_child_already_has_a_child(self):
        assert nest_refusal({"grandchild": "child"}, "child", "parent") == REFUSE_CHILD_HAS_CHILD

    def test_parent_already_has_a_different_child(self):
        assert nest_refusal({"other": "parent"}, "child", "parent") == REFUSE_PARENT_OCCUPIED

    def test_renesting_same_child_is_allowed(self):
        assert nest_refusal({"child": "parent"}, "child", "parent") is None


class TestNestAndUnnest:
    """Test map transforms."""

    def test_nest_returns_new_map(self):
        original = {}
        updated = nest(original, "child", "parent")
        assert updated == {"child": "parent"}
        assert original == {}

    def test_nest_moves_child(self):
        assert nest({"child": "old"}, "child", "new") == {"child": "new"}

    def test_unnest(self):
        original = {"a": "p1", "b": "p2"}
        assert unnest(original, "a") == {"b": "p2"}
        assert original == {"a": "p1", "b": "p2"}

    def test_children_of(self):
        assert children_of({"a": "p1", "b": "p2"}, "p1") == ["a"]
        assert children_of({}, "p1") == []

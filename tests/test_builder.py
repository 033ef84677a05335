"""
Tests for the builder state machine.

The reducer is pure: every test also checks that the input state is unchanged.
"""

import pytest

from orbit.builder import (
    AddItem,
    AttachPhase,
    BuilderState,
    BulkRemoveByPhase,
    DetachPhase,
    MoveItemWithinPhase,
    RemoveItem,
    ReorderItems,
    SetAttachedPhases,
    SetItems,
    builder_reducer,
)


@pytest.fixture
def state(catalog_builder):
    items = (
        catalog_builder.item("m1", "A", 1, item_id="a1"),
        catalog_builder.item("m2", "A", 2, item_id="a2"),
        catalog_builder.item("m3", "B", 3, item_id="b1"),
    )
    return BuilderState(items=items, attached_phase_ids=frozenset({"C"}))


class TestBuilderReducer:
    """Test each builder action."""

    def test_set_items(self, state, catalog_builder):
        replacement = (catalog_builder.item("m9", "Z", 1, item_id="z1"),)
        new_state = builder_reducer(state, SetItems(replacement))
        assert new_state.items == replacement
        assert new_state.attached_phase_ids == state.attached_phase_ids
        assert len(state.items) == 3

    def test_add_item(self, state, catalog_builder):
        item = catalog_builder.item("m4", "B", 4, item_id="b2")
        new_state = builder_reducer(state, AddItem(item))
        assert new_state.get_item("b2") == item
        assert state.get_item("b2") is None

    def test_remove_item(self, state):
        new_state = builder_reducer(state, RemoveItem("a1"))
        assert [i.id for i in new_state.items] == ["a2", "b1"]
        assert state.get_item("a1") is not None

    def test_remove_missing_item(self, state):
        assert builder_reducer(state, RemoveItem("missing")).items == state.items

    def test_bulk_remove_by_phase(self, state):
        new_state = builder_reducer(state, BulkRemoveByPhase("A"))
        assert [i.id for i in new_state.items] == ["b1"]

    def test_reorder_items(self, state):
        reversed_items = tuple(reversed(state.items))
        assert builder_reducer(state, ReorderItems(reversed_items)).items == reversed_items

    def test_move_within_phase(self, state):
        new_state = builder_reducer(state, MoveItemWithinPhase("A", "a2", "a1"))
        orders = {i.id: i.display_order for i in new_state.items}
        assert orders == {"a2": 1, "a1": 2, "b1": 3}

    def test_move_noop_returns_same_state(self, state):
        assert builder_reducer(state, MoveItemWithinPhase("A", "a1", "a1")) is state
        assert builder_reducer(state, MoveItemWithinPhase("A", "a1", "b1")) is state

    def test_attach_and_detach(self, state):
        attached = builder_reducer(state, AttachPhase("D"))
        assert attached.attached_phase_ids == {"C", "D"}
        detached = builder_reducer(attached, DetachPhase("C"))
        assert detached.attached_phase_ids == {"D"}
        assert state.attached_phase_ids == {"C"}

    def test_attach_twice_is_noop(self, state):
        assert builder_reducer(state, AttachPhase("C")) is state

    def test_set_attached_phases(self, state):
        assert builder_reducer(state, SetAttachedPhases(frozenset())).attached_phase_ids == frozenset()


class TestBuilderState:
    """Test derived views on BuilderState."""

    def test_assigned_phase_ids(self, state):
        assert state.assigned_phase_ids == {"A", "B", "C"}

    def test_assigned_milestone_ids(self, state):
        assert state.assigned_milestone_ids == {"m1", "m2", "m3"}

    def test_has_placement(self, state):
        assert state.has_placement("A", "m1")
        assert not state.has_placement("B", "m1")

    def test_items_for_unassigned(self, catalog_builder):
        state = BuilderState(items=(catalog_builder.item("m1", None, 1, item_id="u1"),))
        assert [i.id for i in state.items_for_phase("unassigned")] == ["u1"]

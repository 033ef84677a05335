"""
Tests for the reorder engine.
"""

import pytest

from orbit.reorder import (
    array_move,
    changed_orders,
    items_in_phase,
    move_within_phase,
    next_display_order,
    set_block_order,
)


@pytest.fixture
def interleaved(catalog_builder):
    """Two phases sharing one ordering space: A owns 1, 3, 5 and B owns 2, 4."""
    return [
        catalog_builder.item("m1", "A", 1, item_id="a1"),
        catalog_builder.item("m2", "B", 2, item_id="b1"),
        catalog_builder.item("m3", "A", 3, item_id="a2"),
        catalog_builder.item("m4", "B", 4, item_id="b2"),
        catalog_builder.item("m5", "A", 5, item_id="a3"),
    ]


class TestArrayMove:
    """Test array_move."""

    def test_move_forward(self):
        assert array_move(["a", "b", "c", "d"], 0, 2) == ["b", "c", "a", "d"]

    def test_move_backward(self):
        assert array_move(["a", "b", "c", "d"], 3, 1) == ["a", "d", "b", "c"]

    def test_input_untouched(self):
        source = ["a", "b", "c"]
        array_move(source, 0, 2)
        assert source == ["a", "b", "c"]


class TestMoveWithinPhase:
    """Test item-level reordering inside one phase."""

    def test_preserves_phase_order_values(self, interleaved):
        moved = move_within_phase(interleaved, "A", "a3", "a1")
        phase_a = [i for i in moved if i.phase_id == "A"]
        assert sorted(i.display_order for i in phase_a) == [1, 3, 5]
        assert [i.id for i in sorted(phase_a, key=lambda i: i.display_order)] == ["a3", "a1", "a2"]

    def test_other_phase_untouched(self, interleaved):
        moved = move_within_phase(interleaved, "A", "a1", "a3")
        phase_b = {i.id: i.display_order for i in moved if i.phase_id == "B"}
        assert phase_b == {"b1": 2, "b2": 4}

    def test_result_sorted_by_display_order(self, interleaved):
        moved = move_within_phase(interleaved, "A", "a1", "a2")
        orders = [i.display_order for i in moved]
        assert orders == sorted(orders)

    def test_same_index_is_noop(self, interleaved):
        assert move_within_phase(interleaved, "A", "a2", "a2") is None

    def test_id_outside_phase_is_noop(self, interleaved):
        assert move_within_phase(interleaved, "A", "a1", "b1") is None
        assert move_within_phase(interleaved, "A", "missing", "a1") is None

    def test_unassigned_bucket(self, catalog_builder):
        items = [
            catalog_builder.item("m1", None, 1, item_id="u1"),
            catalog_builder.item("m2", None, 2, item_id="u2"),
        ]
        moved = move_within_phase(items, "unassigned", "u2", "u1")
        assert [i.id for i in moved] == ["u2", "u1"]


class TestChangedOrders:
    """Test changed_orders."""

    def test_only_changed_items(self, interleaved):
        moved = move_within_phase(interleaved, "A", "a1", "a2")
        assert changed_orders(interleaved, moved) == {"a1": 3, "a2": 1}

    def test_nothing_changed(self, interleaved):
        assert changed_orders(interleaved, list(interleaved)) == {}


class TestNextDisplayOrder:
    """Test order assignment for appended milestones."""

    def test_after_phase_max(self, interleaved):
        assert next_display_order(interleaved, "B") == 5

    def test_empty_phase_uses_template_max(self, interleaved):
        assert next_display_order(interleaved, "C") == 6

    def test_empty_template(self):
        assert next_display_order([], "A") == 1


class TestItemsInPhase:
    """Test items_in_phase."""

    def test_sorted(self, catalog_builder):
        items = [
            catalog_builder.item("m2", "A", 9, item_id="late"),
            catalog_builder.item("m1", "A", 2, item_id="early"),
        ]
        assert [i.id for i in items_in_phase(items, "A")] == ["early", "late"]


class TestSetBlockOrder:
    """Test block-level ordering."""

    def test_replaces_one_block(self):
        block_order = {"p1": ["x", "y"], "p2": ["z"]}
        updated = set_block_order(block_order, "p1", ["y", "x"])
        assert updated == {"p1": ["y", "x"], "p2": ["z"]}
        assert block_order["p1"] == ["x", "y"]

    def test_adds_new_block(self):
        assert set_block_order({}, "p1", ["a"]) == {"p1": ["a"]}

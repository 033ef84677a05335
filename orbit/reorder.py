"""
Reorder engine.

Item-level ordering (TemplateItem.display_order) and block-level ordering
(Template.block_order) are independent axes and are never mixed.
"""

from typing import Dict, List, Optional, Sequence, TypeVar

from orbit.constants import UNASSIGNED_PHASE
from orbit.models.template import TemplateItem

T = TypeVar("T")


def array_move(items: Sequence[T], old_index: int, new_index: int) -> List[T]:
    """Return a copy with the element at old_index moved to new_index."""
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


def phase_key(phase_id: Optional[str]) -> Optional[str]:
    """Map the reserved bucket name to the None phase used on items."""
    return None if phase_id == UNASSIGNED_PHASE else phase_id


def items_in_phase(items: Sequence[TemplateItem], phase_id: Optional[str]) -> List[TemplateItem]:
    """Items of one phase (or the unassigned bucket), sorted by display_order."""
    key = phase_key(phase_id)
    return sorted((i for i in items if i.phase_id == key), key=lambda i: i.display_order)


def move_within_phase(
    items: Sequence[TemplateItem],
    phase_id: Optional[str],
    active_id: str,
    over_id: str,
) -> Optional[List[TemplateItem]]:
    """Move active_id to over_id's position inside one phase.

    The phase keeps the exact set of display_order values it already owned;
    only the item-to-value assignment changes, so phases interleaving in a
    shared ordering space are unaffected.

    Returns:
        The full item list sorted by display_order, or None when either id is
        not in the phase or both ids sit at the same index.
    """
    phase_items = items_in_phase(items, phase_id)
    ids = [i.id for i in phase_items]
    if active_id not in ids or over_id not in ids:
        return None
    old_index = ids.index(active_id)
    new_index = ids.index(over_id)
    if old_index == new_index:
        return None

    orders = [i.display_order for i in phase_items]
    reordered = array_move(phase_items, old_index, new_index)
    updated = [
        item if item.display_order == orders[idx] else item.model_copy(update={"display_order": orders[idx]})
        for idx, item in enumerate(reordered)
    ]

    moved_ids = set(ids)
    others = [i for i in items if i.id not in moved_ids]
    return sorted(others + updated, key=lambda i: i.display_order)


def changed_orders(before: Sequence[TemplateItem], after: Sequence[TemplateItem]) -> Dict[str, int]:
    """Items whose display_order differs between two lists, as {id: new order}."""
    previous = {i.id: i.display_order for i in before}
    return {
        i.id: i.display_order
        for i in after
        if i.id in previous and previous[i.id] != i.display_order
    }


def next_display_order(items: Sequence[TemplateItem], phase_id: Optional[str]) -> int:
    """Order for a milestone appended to a phase.

    One past the phase's highest order, or one past the template's highest
    order when the phase is still empty.
    """
    phase_items = items_in_phase(items, phase_id)
    pool = phase_items if phase_items else list(items)
    if not pool:
        return 1
    return max(i.display_order for i in pool) + 1


def set_block_order(
    block_order: Dict[str, List[str]],
    parent_phase_id: str,
    ordered_ids: Sequence[str],
) -> Dict[str, List[str]]:
    """Return a new block_order with one block's child order replaced."""
    updated = {key: list(value) for key, value in block_order.items()}
    updated[parent_phase_id] = list(ordered_ids)
    return updated

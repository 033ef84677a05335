"""
Template-level sub-phase nesting.

A template's sub_phase_map maps child phase id -> parent phase id. Nesting is
one level deep and each parent holds at most one child.
"""

from typing import Dict, List, Optional

REFUSE_SELF = "A phase cannot be nested under itself."
REFUSE_PARENT_IS_CHILD = "The target phase is already a sub-phase and cannot hold one."
REFUSE_CHILD_HAS_CHILD = "A phase that has a sub-phase cannot itself be nested."
REFUSE_PARENT_OCCUPIED = "The target phase already has a sub-phase."
REFUSE_NOT_NESTED = "The phase is not a sub-phase in this template."


def children_of(sub_phase_map: Dict[str, str], parent_id: str) -> List[str]:
    return [child for child, parent in sub_phase_map.items() if parent == parent_id]


def nest_refusal(sub_phase_map: Dict[str, str], child_id: str, parent_id: str) -> Optional[str]:
    """Reason nesting child_id under parent_id is not allowed, or None."""
    if child_id == parent_id:
        return REFUSE_SELF
    if parent_id in sub_phase_map:
        return REFUSE_PARENT_IS_CHILD
    if children_of(sub_phase_map, child_id):
        return REFUSE_CHILD_HAS_CHILD
    if any(existing != child_id for existing in children_of(sub_phase_map, parent_id)):
        return REFUSE_PARENT_OCCUPIED
    return None


def nest(sub_phase_map: Dict[str, str], child_id: str, parent_id: str) -> Dict[str, str]:
    """Return a new map with child_id nested under parent_id.

    Callers check nest_refusal first.
    """
    updated = dict(sub_phase_map)
    updated[child_id] = parent_id
    return updated


def unnest(sub_phase_map: Dict[str, str], child_id: str) -> Dict[str, str]:
    """Return a new map with child_id back at top level."""
    return {child: parent for child, parent in sub_phase_map.items() if child != child_id}

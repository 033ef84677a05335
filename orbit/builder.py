"""
Builder state machine.

BuilderState is the working copy of one selected template: its items and the
phases attached to it that do not hold a milestone yet. builder_reducer
applies one action and returns a new state; it never mutates its input.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Set, Tuple, Union

from orbit.models.template import TemplateItem
from orbit.reorder import move_within_phase, phase_key


@dataclass(frozen=True)
class BuilderState:
    items: Tuple[TemplateItem, ...] = ()
    attached_phase_ids: FrozenSet[str] = field(default_factory=frozenset)

    def get_item(self, item_id: str) -> Optional[TemplateItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def items_for_phase(self, phase_id: Optional[str]) -> Tuple[TemplateItem, ...]:
        key = phase_key(phase_id)
        return tuple(i for i in self.items if i.phase_id == key)

    @property
    def assigned_phase_ids(self) -> Set[str]:
        """Phases shown in the template: those with items plus attached ones."""
        from_items = {i.phase_id for i in self.items if i.phase_id}
        return from_items | set(self.attached_phase_ids)

    @property
    def assigned_milestone_ids(self) -> Set[str]:
        return {i.milestone_id for i in self.items}

    def has_placement(self, phase_id: Optional[str], milestone_id: str) -> bool:
        key = phase_key(phase_id)
        return any(i.phase_id == key and i.milestone_id == milestone_id for i in self.items)


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class SetItems:
    """Full replace; used on load and after a rollback."""
    items: Tuple[TemplateItem, ...]


@dataclass(frozen=True)
class AddItem:
    item: TemplateItem


@dataclass(frozen=True)
class RemoveItem:
    item_id: str


@dataclass(frozen=True)
class BulkRemoveByPhase:
    """Drop every item in one phase, e.g. when the phase is detached."""
    phase_id: Optional[str]


@dataclass(frozen=True)
class ReorderItems:
    """Full replace with a caller-supplied order."""
    items: Tuple[TemplateItem, ...]


@dataclass(frozen=True)
class MoveItemWithinPhase:
    phase_id: str
    active_id: str
    over_id: str


@dataclass(frozen=True)
class AttachPhase:
    phase_id: str


@dataclass(frozen=True)
class DetachPhase:
    phase_id: str


@dataclass(frozen=True)
class SetAttachedPhases:
    phase_ids: FrozenSet[str]


BuilderAction = Union[
    SetItems,
    AddItem,
    RemoveItem,
    BulkRemoveByPhase,
    ReorderItems,
    MoveItemWithinPhase,
    AttachPhase,
    DetachPhase,
    SetAttachedPhases,
]


def _replace_items(state: BuilderState, items: Iterable[TemplateItem]) -> BuilderState:
    return BuilderState(items=tuple(items), attached_phase_ids=state.attached_phase_ids)


def _replace_attached(state: BuilderState, phase_ids: Iterable[str]) -> BuilderState:
    return BuilderState(items=state.items, attached_phase_ids=frozenset(phase_ids))


def builder_reducer(state: BuilderState, action: BuilderAction) -> BuilderState:
    """Apply one action to a builder state."""
    if isinstance(action, (SetItems, ReorderItems)):
        return _replace_items(state, action.items)
    if isinstance(action, AddItem):
        return _replace_items(state, state.items + (action.item,))
    if isinstance(action, RemoveItem):
        return _replace_items(state, (i for i in state.items if i.id != action.item_id))
    if isinstance(action, BulkRemoveByPhase):
        key = phase_key(action.phase_id)
        return _replace_items(state, (i for i in state.items if i.phase_id != key))
    if isinstance(action, MoveItemWithinPhase):
        moved = move_within_phase(state.items, action.phase_id, action.active_id, action.over_id)
        if moved is None:
            return state
        return _replace_items(state, moved)
    if isinstance(action, AttachPhase):
        if action.phase_id in state.attached_phase_ids:
            return state
        return _replace_attached(state, state.attached_phase_ids | {action.phase_id})
    if isinstance(action, DetachPhase):
        if action.phase_id not in state.attached_phase_ids:
            return state
        return _replace_attached(state, state.attached_phase_ids - {action.phase_id})
    if isinstance(action, SetAttachedPhases):
        return _replace_attached(state, action.phase_ids)
    return state

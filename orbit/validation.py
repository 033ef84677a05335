"""Required-structure checks and catalog invariant checks.

Everything here is pure: no storage access, no exceptions. A missing phase or
milestone means "structure not satisfied", never an error.
"""

from typing import Iterable, List, NamedTuple, Optional, Sequence, Set, Tuple, TypeVar

from orbit.constants import (
    PAIR_END,
    PAIR_START,
    REQUIRED_MILESTONE_NAMES,
    REQUIRED_PHASE_MILESTONES,
    REQUIRED_PHASE_NAMES,
)
from orbit.models.catalog import CatalogItem, Milestone, Phase
from orbit.models.template import TemplateItem

CatalogT = TypeVar("CatalogT", bound=CatalogItem)


class RequiredPlacement(NamedTuple):
    phase_name: str
    milestone_name: str


REQUIRED_PLACEMENTS: Tuple[RequiredPlacement, ...] = tuple(
    RequiredPlacement(phase_name, milestone_name)
    for phase_name in REQUIRED_PHASE_NAMES
    for milestone_name in REQUIRED_PHASE_MILESTONES[phase_name]
)


def is_required_phase(internal_name: str) -> bool:
    return internal_name in REQUIRED_PHASE_NAMES


def is_required_milestone(internal_name: str) -> bool:
    return internal_name in REQUIRED_MILESTONE_NAMES


def _find_by_name(records: Iterable[CatalogT], internal_name: str) -> Optional[CatalogT]:
    for record in records:
        if record.internal_name == internal_name:
            return record
    return None


def has_required_structure(
    phases: Sequence[Phase],
    milestones: Sequence[Milestone],
    items: Sequence[TemplateItem],
) -> bool:
    """Return True when every required (phase, milestone) placement exists.

    Stops at the first missing phase, milestone or placement.
    """
    placed = {(item.phase_id, item.milestone_id) for item in items}
    for phase_name in REQUIRED_PHASE_NAMES:
        phase = _find_by_name(phases, phase_name)
        if phase is None:
            return False
        for milestone_name in REQUIRED_PHASE_MILESTONES[phase_name]:
            milestone = _find_by_name(milestones, milestone_name)
            if milestone is None:
                return False
            if (phase.id, milestone.id) not in placed:
                return False
    return True


def required_item_ids(
    phases: Sequence[Phase],
    milestones: Sequence[Milestone],
    items: Sequence[TemplateItem],
) -> Set[str]:
    """Ids of items realizing a required placement.

    Empty for grandfathered templates that do not carry the full structure.
    """
    if not has_required_structure(phases, milestones, items):
        return set()

    phase_names = {p.id: p.internal_name for p in phases}
    milestone_names = {m.id: m.internal_name for m in milestones}
    ids = set()
    for item in items:
        phase_name = phase_names.get(item.phase_id) if item.phase_id else None
        milestone_name = milestone_names.get(item.milestone_id)
        if phase_name is None or milestone_name is None:
            continue
        if RequiredPlacement(phase_name, milestone_name) in REQUIRED_PLACEMENTS:
            ids.add(item.id)
    return ids


def required_phase_ids(
    phases: Sequence[Phase],
    milestones: Sequence[Milestone],
    items: Sequence[TemplateItem],
) -> Set[str]:
    """Ids of the required phases, or empty when the structure is not satisfied."""
    if not has_required_structure(phases, milestones, items):
        return set()
    ids = set()
    for phase_name in REQUIRED_PHASE_NAMES:
        phase = _find_by_name(phases, phase_name)
        if phase is not None:
            ids.add(phase.id)
    return ids


def plan_required_items(
    phases: Sequence[Phase],
    milestones: Sequence[Milestone],
    template_id: str,
) -> Tuple[List[TemplateItem], Set[str]]:
    """Build the items a new template is seeded with.

    Absent phases and milestones are skipped. display_order runs 1..N in
    placement order.

    Returns:
        (items, phase ids to mark as attached)
    """
    items: List[TemplateItem] = []
    attached: Set[str] = set()
    display_order = 0
    for phase_name in REQUIRED_PHASE_NAMES:
        phase = _find_by_name(phases, phase_name)
        if phase is None:
            continue
        attached.add(phase.id)
        for milestone_name in REQUIRED_PHASE_MILESTONES[phase_name]:
            milestone = _find_by_name(milestones, milestone_name)
            if milestone is None:
                continue
            display_order += 1
            items.append(
                TemplateItem(
                    template_id=template_id,
                    milestone_id=milestone.id,
                    phase_id=phase.id,
                    display_order=display_order,
                )
            )
    return items, attached


def check_pairs(milestones: Sequence[Milestone]) -> List[str]:
    """Report pairing violations: dangling partners, one-way links, same positions."""
    by_id = {m.id: m for m in milestones}
    problems = []
    for milestone in milestones:
        if milestone.pair_with_id is None:
            if milestone.pair_position is not None:
                problems.append(f"{milestone.internal_name}: pair_position set without a partner")
            continue
        partner = by_id.get(milestone.pair_with_id)
        if partner is None:
            problems.append(f"{milestone.internal_name}: partner {milestone.pair_with_id} does not exist")
            continue
        if partner.pair_with_id != milestone.id:
            problems.append(f"{milestone.internal_name}: partner {partner.internal_name} does not point back")
        if {milestone.pair_position, partner.pair_position} != {PAIR_START, PAIR_END}:
            problems.append(
                f"{milestone.internal_name}: positions with {partner.internal_name} are not start/end"
            )
    return problems


def check_nesting(phases: Sequence[Phase]) -> List[str]:
    """Report phases whose parent itself has a parent."""
    parents = {p.id: p.parent_phase_id for p in phases}
    problems = []
    for phase in phases:
        parent_id = phase.parent_phase_id
        if parent_id is not None and parents.get(parent_id) is not None:
            problems.append(f"{phase.internal_name}: nested more than one level deep")
    return problems

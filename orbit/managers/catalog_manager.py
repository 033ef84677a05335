"""
CatalogManager for the Orbit template engine.

Milestones and phases are soft-deleted only. Archiving a phase orphans its
children; archiving a milestone unlinks its pair partner and leaves every
template item that references it in place.
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from orbit.constants import (
    CATALOG_KINDS,
    DEFAULT_COLOR_KEY,
    MILESTONE_KIND,
    PAIR_END,
    PAIR_START,
    PHASE_KIND,
    VALIDATION_DISPLAY_NAME_REQUIRED,
)
from orbit.exceptions import ConflictError, ValidationError
from orbit.managers.data_store import DataStore
from orbit.managers.events import EventBus, EventType
from orbit.models.catalog import Milestone, Phase
from orbit.models.results import ActionResult
from orbit.validation import check_nesting, check_pairs

logger = logging.getLogger(__name__)

CatalogRecord = Union[Milestone, Phase]

REFUSE_PAIR_SELF = "A milestone cannot be paired with itself."
REFUSE_ALREADY_PAIRED = "Both milestones must be unpaired before linking."
REFUSE_NOT_PAIRED = "This milestone is not paired."
REFUSE_PARENT_SELF = "A phase cannot be its own parent."
REFUSE_PARENT_NESTED = "Sub-phases cannot have their own sub-phases."
REFUSE_CHILD_HAS_CHILDREN = "A phase with sub-phases cannot become a sub-phase."
REFUSE_PARENT_ARCHIVED = "The parent phase is archived."


def internal_name_from(display_name: str) -> str:
    """Derive a machine name: ``"Prep/Drape Start"`` -> ``prep_drape_start``."""
    return re.sub(r"[^a-z0-9]+", "_", display_name.lower()).strip("_")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CatalogManager:
    """
    Manages the milestone and phase catalogs.

    Handles:
    - Listing active entries in display order
    - Creating and renaming entries
    - Archiving (with orphaning and pair unlinking) and restoring
    - Linking milestone pairs and catalog-level phase parents

    Usage:
        catalog = CatalogManager(store, event_bus)
        result = catalog.create_milestone("Anesthesia Start")
        catalog.archive(PHASE_KIND, phase_id, deleted_by="user-1")
        catalog.restore(PHASE_KIND, phase_id)
    """

    def __init__(self, store: DataStore, event_bus: Optional[EventBus] = None) -> None:
        """
        Initialize CatalogManager.

        Args:
            store: DataStore for the active scope.
            event_bus: Bus receiving audit events; None disables auditing.
        """
        self.store = store
        self.event_bus = event_bus

    def _audit(self, event_type: EventType, kind: str, record_id: str, old=None, new=None) -> None:
        if self.event_bus is None:
            return
        self.event_bus.audit(event_type, kind, record_id, old_value=old, new_value=new)

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in CATALOG_KINDS:
            raise ValidationError(f"Unknown catalog kind '{kind}'. Expected one of {CATALOG_KINDS}.")

    # =========================================================================
    # Reads
    # =========================================================================

    def list_all(self, kind: str) -> List[CatalogRecord]:
        self._check_kind(kind)
        if kind == MILESTONE_KIND:
            return list(self.store.list_milestones())
        return list(self.store.list_phases())

    def list_active(self, kind: str) -> List[CatalogRecord]:
        """Active entries of one kind in display order."""
        return [record for record in self.list_all(kind) if record.is_active]

    def list_archived(self, kind: str) -> List[CatalogRecord]:
        return [record for record in self.list_all(kind) if not record.is_active]

    def get(self, kind: str, record_id: str) -> CatalogRecord:
        """
        Fetch one entry.

        Raises:
            NotFoundError: If no entry of this kind has the id.
        """
        self._check_kind(kind)
        if kind == MILESTONE_KIND:
            return self.store.get_milestone(record_id)
        return self.store.get_phase(record_id)

    def _update(self, kind: str, record_id: str, **fields) -> CatalogRecord:
        if kind == MILESTONE_KIND:
            return self.store.update_milestone(record_id, **fields)
        return self.store.update_phase(record_id, **fields)

    def _active_name_taken(self, kind: str, internal_name: str, exclude_id: Optional[str] = None) -> bool:
        return any(
            record.internal_name == internal_name and record.id != exclude_id
            for record in self.list_active(kind)
        )

    # =========================================================================
    # Create / rename
    # =========================================================================

    def _create(self, kind: str, display_name: str, internal_name: Optional[str], **fields) -> ActionResult:
        display_name = display_name.strip()
        if not display_name:
            return ActionResult.refuse(VALIDATION_DISPLAY_NAME_REQUIRED)

        name = internal_name or internal_name_from(display_name)
        if self._active_name_taken(kind, name):
            raise ConflictError(f"An active {kind} named '{name}' already exists.")

        existing = self.list_all(kind)
        display_order = max((r.display_order for r in existing), default=0) + 1
        model = Milestone if kind == MILESTONE_KIND else Phase
        try:
            record = model(
                internal_name=name,
                display_name=display_name,
                display_order=display_order,
                **fields,
            )
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e

        if kind == MILESTONE_KIND:
            self.store.save_milestone(record)
        else:
            self.store.save_phase(record)
        logger.info("Created %s %s", kind, record.internal_name, extra={"entity": kind})
        self._audit(EventType.CREATED, kind, record.id, new=record.model_dump(mode="json"))
        return ActionResult.ok(record)

    def create_milestone(self, display_name: str, internal_name: Optional[str] = None) -> ActionResult:
        """
        Append a milestone to the catalog.

        Args:
            display_name: Human-facing label; blank names are refused.
            internal_name: Machine name; derived from display_name when omitted.

        Returns:
            ActionResult whose value is the new Milestone.

        Raises:
            ConflictError: If an active milestone already uses the internal name.
        """
        return self._create(MILESTONE_KIND, display_name, internal_name)

    def create_phase(
        self,
        display_name: str,
        internal_name: Optional[str] = None,
        color_key: str = DEFAULT_COLOR_KEY,
    ) -> ActionResult:
        """Append a top-level phase to the catalog. See create_milestone."""
        return self._create(PHASE_KIND, display_name, internal_name, color_key=color_key)

    def rename(self, kind: str, record_id: str, display_name: str) -> ActionResult:
        """Change an entry's display name. The internal name never changes."""
        self._check_kind(kind)
        display_name = display_name.strip()
        if not display_name:
            return ActionResult.refuse(VALIDATION_DISPLAY_NAME_REQUIRED)

        current = self.get(kind, record_id)
        if current.display_name == display_name:
            return ActionResult.ok(current)
        updated = self._update(kind, record_id, display_name=display_name)
        self._audit(
            EventType.UPDATED,
            kind,
            record_id,
            old={"display_name": current.display_name},
            new={"display_name": display_name},
        )
        return ActionResult.ok(updated)

    # =========================================================================
    # Archive / restore
    # =========================================================================

    def archive(self, kind: str, record_id: str, deleted_by: Optional[str] = None) -> CatalogRecord:
        """
        Soft-delete an entry.

        Archiving a phase first clears parent_phase_id on every phase that
        points at it. Archiving a paired milestone clears the pairing on both
        sides. Template items are never touched. Archiving an archived entry
        returns it unchanged and emits nothing.

        Raises:
            NotFoundError: If the id does not exist.
        """
        current = self.get(kind, record_id)
        if not current.is_active:
            return current

        if kind == PHASE_KIND:
            for child in self.store.list_phases():
                if child.parent_phase_id == record_id:
                    self.store.update_phase(child.id, parent_phase_id=None)
                    logger.info(
                        "Orphaned sub-phase %s", child.internal_name, extra={"entity": PHASE_KIND}
                    )
        elif current.pair_with_id is not None:
            self._clear_partner(current.pair_with_id)

        fields = {"is_active": False, "deleted_at": _now(), "deleted_by": deleted_by}
        if kind == MILESTONE_KIND:
            fields.update(pair_with_id=None, pair_position=None)
        archived = self._update(kind, record_id, **fields)

        logger.info("Archived %s %s", kind, current.internal_name, extra={"entity": kind})
        self._audit(
            EventType.ARCHIVED,
            kind,
            record_id,
            old=current.model_dump(mode="json"),
            new=archived.model_dump(mode="json"),
        )
        return archived

    def restore(self, kind: str, record_id: str) -> CatalogRecord:
        """
        Bring an archived entry back.

        Raises:
            NotFoundError: If the id does not exist.
            ConflictError: If another active entry now uses the same internal name.
        """
        current = self.get(kind, record_id)
        if current.is_active:
            return current
        if self._active_name_taken(kind, current.internal_name, exclude_id=record_id):
            raise ConflictError(
                f"Cannot restore {kind} '{current.internal_name}': an active {kind} already uses that name."
            )

        restored = self._update(kind, record_id, is_active=True, deleted_at=None, deleted_by=None)
        logger.info("Restored %s %s", kind, current.internal_name, extra={"entity": kind})
        self._audit(
            EventType.RESTORED,
            kind,
            record_id,
            old=current.model_dump(mode="json"),
            new=restored.model_dump(mode="json"),
        )
        return restored

    # =========================================================================
    # Milestone pairs
    # =========================================================================

    def _clear_partner(self, partner_id: str) -> None:
        partner = next((m for m in self.store.list_milestones() if m.id == partner_id), None)
        if partner is not None:
            self.store.update_milestone(partner_id, pair_with_id=None, pair_position=None)

    def link_pair(self, first_id: str, second_id: str) -> ActionResult:
        """
        Pair two milestones into an interval.

        The milestone earlier in the catalog becomes the start side.

        Returns:
            ActionResult whose value is (start, end).
        """
        if first_id == second_id:
            return ActionResult.refuse(REFUSE_PAIR_SELF)
        first = self.store.get_milestone(first_id)
        second = self.store.get_milestone(second_id)
        if first.is_paired or second.is_paired:
            return ActionResult.refuse(REFUSE_ALREADY_PAIRED)

        start, end = (first, second) if first.display_order <= second.display_order else (second, first)
        start = self.store.update_milestone(start.id, pair_with_id=end.id, pair_position=PAIR_START)
        end = self.store.update_milestone(end.id, pair_with_id=start.id, pair_position=PAIR_END)
        self._audit(EventType.LINKED, MILESTONE_KIND, start.id, new={"pair_with_id": end.id})
        return ActionResult.ok((start, end))

    def unlink_pair(self, milestone_id: str) -> ActionResult:
        """Clear the pairing on a milestone and its partner."""
        milestone = self.store.get_milestone(milestone_id)
        if not milestone.is_paired:
            return ActionResult.refuse(REFUSE_NOT_PAIRED)

        self._clear_partner(milestone.pair_with_id)
        updated = self.store.update_milestone(milestone_id, pair_with_id=None, pair_position=None)
        self._audit(
            EventType.UNLINKED,
            MILESTONE_KIND,
            milestone_id,
            old={"pair_with_id": milestone.pair_with_id},
        )
        return ActionResult.ok(updated)

    def check_pairs(self) -> List[str]:
        """Pair invariant violations across the whole milestone catalog."""
        return check_pairs(self.store.list_milestones())

    # =========================================================================
    # Catalog-level phase nesting
    # =========================================================================

    def set_parent_phase(self, child_id: str, parent_id: Optional[str]) -> ActionResult:
        """
        Nest a phase one level under another, or move it back to top level.

        Args:
            child_id: Phase being moved.
            parent_id: New parent, or None for top level.
        """
        child = self.store.get_phase(child_id)
        if parent_id is None:
            if child.parent_phase_id is None:
                return ActionResult.ok(child)
            updated = self.store.update_phase(child_id, parent_phase_id=None)
            self._audit(
                EventType.UPDATED,
                PHASE_KIND,
                child_id,
                old={"parent_phase_id": child.parent_phase_id},
                new={"parent_phase_id": None},
            )
            return ActionResult.ok(updated)

        if parent_id == child_id:
            return ActionResult.refuse(REFUSE_PARENT_SELF)
        parent = self.store.get_phase(parent_id)
        if not parent.is_active:
            return ActionResult.refuse(REFUSE_PARENT_ARCHIVED)
        if parent.parent_phase_id is not None:
            return ActionResult.refuse(REFUSE_PARENT_NESTED)
        if any(p.parent_phase_id == child_id for p in self.store.list_phases() if p.is_active):
            return ActionResult.refuse(REFUSE_CHILD_HAS_CHILDREN)

        updated = self.store.update_phase(child_id, parent_phase_id=parent_id)
        self._audit(
            EventType.UPDATED,
            PHASE_KIND,
            child_id,
            old={"parent_phase_id": child.parent_phase_id},
            new={"parent_phase_id": parent_id},
        )
        return ActionResult.ok(updated)

    def check_nesting(self) -> List[str]:
        """Phases nested deeper than one level."""
        return check_nesting(self.store.list_phases())

"""
TemplateManager for the Orbit template engine.

Template persistence: listing, insertion with items, duplication planning,
default promotion and the archive guard. The builder session runs these
writes through the mutation executor.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from orbit.constants import (
    TEMPLATE_ENTITY,
    VALIDATION_ARCHIVE_ASSIGNED,
    VALIDATION_ARCHIVE_DEFAULT,
    get_duplicate_name_suffix,
)
from orbit.managers.data_store import DataStore
from orbit.managers.events import EventBus, EventType
from orbit.models.results import ActionResult
from orbit.models.template import Template, TemplateItem

logger = logging.getLogger(__name__)


class TemplateManager:
    """
    Manages template records and their items.

    Usage:
        templates = TemplateManager(store, event_bus)
        active = templates.list_active()
        template, items = templates.insert(Template(name="Ortho"), planned_items)
        refusal = templates.archive_refusal(template)
    """

    def __init__(self, store: DataStore, event_bus: Optional[EventBus] = None) -> None:
        """
        Initialize TemplateManager.

        Args:
            store: DataStore for the active scope.
            event_bus: Bus receiving audit events; None disables auditing.
        """
        self.store = store
        self.event_bus = event_bus

    def _audit(self, event_type: EventType, template_id: str, old=None, new=None) -> None:
        if self.event_bus is not None:
            self.event_bus.audit(event_type, TEMPLATE_ENTITY, template_id, old_value=old, new_value=new)

    # =========================================================================
    # Reads
    # =========================================================================

    def list_all(self) -> List[Template]:
        return self.store.list_templates()

    def list_active(self) -> List[Template]:
        """Active templates, in the order the store lists them."""
        return [t for t in self.store.list_templates() if t.is_active]

    def get(self, template_id: str) -> Template:
        return self.store.get_template(template_id)

    def get_default(self) -> Optional[Template]:
        for template in self.list_active():
            if template.is_default:
                return template
        return None

    def load_items(self, template_id: str) -> List[TemplateItem]:
        return self.store.list_items(template_id)

    def assignment_counts(self) -> Dict[str, int]:
        return self.store.count_assignments()

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(
        self, template: Template, items: Sequence[TemplateItem]
    ) -> Tuple[Template, List[TemplateItem]]:
        """
        Persist a new template and its items.

        The template and every item receive real ids; items are re-pointed at
        the stored template. The first active template of a scope becomes the
        default.

        Returns:
            (stored template, stored items)
        """
        is_default = template.is_default or not self.list_active()
        stored = self.store.insert_template(template.model_copy(update={"is_default": is_default}))
        if stored.is_default:
            stored = self.store.set_default_template(stored.id)

        stored_items = self.store.insert_items(
            [item.model_copy(update={"template_id": stored.id}) for item in items]
        )
        logger.info(
            "Created template %s with %d items",
            stored.name,
            len(stored_items),
            extra={"template_id": stored.id},
        )
        self._audit(EventType.CREATED, stored.id, new=stored.model_dump(mode="json"))
        return stored, stored_items

    def update_structure(self, template_id: str, **fields) -> Template:
        """Persist block_order and/or sub_phase_map changes."""
        current = self.store.get_template(template_id)
        updated = self.store.update_template(template_id, **fields)
        self._audit(
            EventType.UPDATED,
            template_id,
            old={key: getattr(current, key) for key in fields},
            new=dict(fields),
        )
        return updated

    def rename(self, template_id: str, name: str) -> Template:
        current = self.store.get_template(template_id)
        updated = self.store.update_template(template_id, name=name)
        self._audit(EventType.UPDATED, template_id, old={"name": current.name}, new={"name": name})
        return updated

    def set_default(self, template_id: str) -> Template:
        """Promote one template to default; every other template loses the flag."""
        previous = self.get_default()
        promoted = self.store.set_default_template(template_id)
        self._audit(
            EventType.UPDATED,
            template_id,
            old={"default_template_id": previous.id if previous else None},
            new={"default_template_id": template_id},
        )
        return promoted

    def archive_refusal(self, template: Template) -> Optional[ActionResult]:
        """
        Reason a template may not be archived, or None.

        The default template and templates still referenced by active
        assignments are refused; the latter carries the assignment count.
        """
        if template.is_default:
            return ActionResult.refuse(VALIDATION_ARCHIVE_DEFAULT)
        count = self.assignment_counts().get(template.id, 0)
        if count > 0:
            return ActionResult.refuse(VALIDATION_ARCHIVE_ASSIGNED.format(count=count), count=count)
        return None

    def archive(self, template_id: str) -> Template:
        """Soft-delete a template. Callers check archive_refusal first."""
        current = self.store.get_template(template_id)
        if not current.is_active:
            return current
        archived = self.store.update_template(
            template_id, is_active=False, deleted_at=datetime.now(timezone.utc)
        )
        logger.info("Archived template %s", current.name, extra={"template_id": template_id})
        self._audit(
            EventType.ARCHIVED,
            template_id,
            old=current.model_dump(mode="json"),
            new=archived.model_dump(mode="json"),
        )
        return archived


def duplicate_name(name: str) -> str:
    return f"{name}{get_duplicate_name_suffix()}"


def plan_duplicate(
    source: Template,
    items: Sequence[TemplateItem],
    template_id: str,
    item_ids: Sequence[str],
) -> Tuple[Template, List[TemplateItem]]:
    """
    Deep copy of a template and its items under new ids.

    block_order and sub_phase_map are keyed by phase ids, which the copy
    shares with its source, so they carry over unchanged. The copy is never
    the default.
    """
    copy = source.model_copy(
        update={
            "id": template_id,
            "name": duplicate_name(source.name),
            "is_default": False,
            "is_active": True,
            "deleted_at": None,
        },
        deep=True,
    )
    copied_items = [
        item.model_copy(update={"id": new_item_id, "template_id": template_id})
        for item, new_item_id in zip(items, item_ids)
    ]
    return copy, copied_items

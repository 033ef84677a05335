"""
Canonical persistence API over one storage scope.

DataStore is the "remote" side of every optimistic mutation: it reads and
writes canonical models, assigns real ids on insert and raises NotFoundError
for ids that no longer exist.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from orbit.exceptions import NotFoundError
from orbit.managers.storage_manager import StorageManager
from orbit.models.catalog import Milestone, Phase
from orbit.models.template import Template, TemplateItem
from orbit.scopes import (
    ASSIGNMENTS,
    MILESTONES,
    PHASES,
    TEMPLATE_ITEMS,
    TEMPLATES,
    ScopeAdapter,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def new_id() -> str:
    return str(uuid.uuid4())


class DataStore:
    """
    Reads and writes canonical Milestone/Phase/Template/TemplateItem rows.

    Usage:
        store = DataStore(StorageManager(data_dir, "facility"))
        phases = store.list_phases()
        item = store.insert_item(TemplateItem(template_id=t.id, milestone_id=m.id))
    """

    def __init__(self, storage: StorageManager, adapter: Optional[ScopeAdapter] = None) -> None:
        """
        Initialize DataStore.

        Args:
            storage: StorageManager for the scope's table files.
            adapter: Column adapter; defaults to the adapter for storage.scope.
        """
        self.storage = storage
        self.adapter = adapter or ScopeAdapter.for_scope(storage.scope)

    @property
    def scope(self) -> str:
        return self.adapter.scope

    # =========================================================================
    # Row access
    # =========================================================================

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        rows = self.storage.load_rows(self.adapter.table_name(table))
        return [self.adapter.to_canonical(table, row) for row in rows]

    def _write(self, table: str, rows: List[Dict[str, Any]]) -> None:
        scoped = [self.adapter.to_scoped(table, row) for row in rows]
        self.storage.save_rows(self.adapter.table_name(table), scoped)

    def _load(self, table: str, model: Type[ModelT]) -> List[ModelT]:
        return [model.model_validate(row) for row in self._rows(table)]

    def _get(self, table: str, model: Type[ModelT], record_id: str) -> ModelT:
        for row in self._rows(table):
            if row.get("id") == record_id:
                return model.model_validate(row)
        raise NotFoundError(f"{table} record '{record_id}' not found.")

    def _upsert(self, table: str, record: BaseModel) -> None:
        data = record.model_dump(mode="json")
        rows = self._rows(table)
        for index, row in enumerate(rows):
            if row.get("id") == data["id"]:
                rows[index] = data
                break
        else:
            rows.append(data)
        self._write(table, rows)

    def _update(self, table: str, model: Type[ModelT], record_id: str, fields: Dict[str, Any]) -> ModelT:
        rows = self._rows(table)
        for index, row in enumerate(rows):
            if row.get("id") == record_id:
                updated = model.model_validate({**row, **fields})
                rows[index] = updated.model_dump(mode="json")
                self._write(table, rows)
                return updated
        raise NotFoundError(f"{table} record '{record_id}' not found.")

    # =========================================================================
    # Catalog
    # =========================================================================

    def list_milestones(self) -> List[Milestone]:
        """All milestones, archived included, in display order."""
        return sorted(self._load(MILESTONES, Milestone), key=lambda m: m.display_order)

    def list_phases(self) -> List[Phase]:
        """All phases, archived included, in display order."""
        return sorted(self._load(PHASES, Phase), key=lambda p: p.display_order)

    def get_milestone(self, milestone_id: str) -> Milestone:
        return self._get(MILESTONES, Milestone, milestone_id)

    def get_phase(self, phase_id: str) -> Phase:
        return self._get(PHASES, Phase, phase_id)

    def save_milestone(self, milestone: Milestone) -> Milestone:
        self._upsert(MILESTONES, milestone)
        return milestone

    def save_phase(self, phase: Phase) -> Phase:
        self._upsert(PHASES, phase)
        return phase

    def update_milestone(self, milestone_id: str, **fields: Any) -> Milestone:
        return self._update(MILESTONES, Milestone, milestone_id, fields)

    def update_phase(self, phase_id: str, **fields: Any) -> Phase:
        return self._update(PHASES, Phase, phase_id, fields)

    # =========================================================================
    # Templates
    # =========================================================================

    def list_templates(self) -> List[Template]:
        """All templates, default first, then by name."""
        templates = self._load(TEMPLATES, Template)
        return sorted(templates, key=lambda t: (not t.is_default, t.name))

    def get_template(self, template_id: str) -> Template:
        return self._get(TEMPLATES, Template, template_id)

    def insert_template(self, template: Template) -> Template:
        """Persist a new template under a freshly assigned id."""
        inserted = template.model_copy(update={"id": new_id()}, deep=True)
        self._upsert(TEMPLATES, inserted)
        logger.info("Inserted template %s", inserted.id, extra={"template_id": inserted.id})
        return inserted

    def update_template(self, template_id: str, **fields: Any) -> Template:
        return self._update(TEMPLATES, Template, template_id, fields)

    def set_default_template(self, template_id: str) -> Template:
        """Make one template the scope default and clear the flag on all others."""
        rows = self._rows(TEMPLATES)
        if not any(row.get("id") == template_id for row in rows):
            raise NotFoundError(f"{TEMPLATES} record '{template_id}' not found.")
        for row in rows:
            row["is_default"] = row.get("id") == template_id
        self._write(TEMPLATES, rows)
        return self.get_template(template_id)

    # =========================================================================
    # Template items
    # =========================================================================

    def list_items(self, template_id: str) -> List[TemplateItem]:
        """Items of one template in display order."""
        items = [i for i in self._load(TEMPLATE_ITEMS, TemplateItem) if i.template_id == template_id]
        return sorted(items, key=lambda i: i.display_order)

    def insert_item(self, item: TemplateItem) -> TemplateItem:
        """Persist one item under a freshly assigned id."""
        return self.insert_items([item])[0]

    def insert_items(self, items: List[TemplateItem]) -> List[TemplateItem]:
        """Persist several items in one write, each under a freshly assigned id."""
        if not items:
            return []
        inserted = [item.model_copy(update={"id": new_id()}) for item in items]
        rows = self._rows(TEMPLATE_ITEMS)
        rows.extend(item.model_dump(mode="json") for item in inserted)
        self._write(TEMPLATE_ITEMS, rows)
        return inserted

    def delete_item(self, item_id: str) -> None:
        rows = self._rows(TEMPLATE_ITEMS)
        remaining = [row for row in rows if row.get("id") != item_id]
        if len(remaining) == len(rows):
            raise NotFoundError(f"{TEMPLATE_ITEMS} record '{item_id}' not found.")
        self._write(TEMPLATE_ITEMS, remaining)

    def delete_items_by_phase(self, template_id: str, phase_id: Optional[str]) -> int:
        """Delete every item of a template placed under one phase (None: the unassigned bucket).

        Returns:
            Number of rows deleted.
        """
        rows = self._rows(TEMPLATE_ITEMS)
        remaining = [
            row for row in rows
            if not (row.get("template_id") == template_id and row.get("phase_id") == phase_id)
        ]
        deleted = len(rows) - len(remaining)
        if deleted:
            self._write(TEMPLATE_ITEMS, remaining)
        return deleted

    def update_item_order(self, item_id: str, display_order: int) -> TemplateItem:
        return self._update(TEMPLATE_ITEMS, TemplateItem, item_id, {"display_order": display_order})

    # =========================================================================
    # External assignments
    # =========================================================================

    def add_assignment(self, template_id: str) -> str:
        """Record an external reference (e.g. a procedure type) to a template."""
        assignment_id = new_id()
        rows = self._rows(ASSIGNMENTS)
        rows.append({"id": assignment_id, "template_id": template_id, "is_active": True})
        self._write(ASSIGNMENTS, rows)
        return assignment_id

    def count_assignments(self) -> Dict[str, int]:
        """Active assignment count per template id."""
        counts: Dict[str, int] = {}
        for row in self._rows(ASSIGNMENTS):
            template_id = row.get("template_id")
            if template_id and row.get("is_active", True):
                counts[template_id] = counts.get(template_id, 0) + 1
        return counts

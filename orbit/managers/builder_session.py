"""
BuilderSession for the Orbit template engine.

One session edits one selected template at a time. Every structural change is
checked against the required structure and the nesting rules, then run
through the MutationExecutor so a failed write never leaves optimistic state
behind. Refusals come back as ActionResult(blocked=True); storage failures
are raised.
"""

import dataclasses
import logging
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from orbit.builder import (
    AddItem,
    AttachPhase,
    BuilderState,
    BulkRemoveByPhase,
    DetachPhase,
    MoveItemWithinPhase,
    RemoveItem,
    SetAttachedPhases,
    SetItems,
    builder_reducer,
)
from orbit.constants import (
    TEMPLATE_ITEM_ENTITY,
    TEMPLATE_PHASE_ENTITY,
    UNASSIGNED_PHASE,
    VALIDATION_DUPLICATE_PLACEMENT,
    VALIDATION_NO_TEMPLATE,
    VALIDATION_REQUIRED_MILESTONE,
    VALIDATION_REQUIRED_PHASE,
    VALIDATION_TEMPLATE_NAME_REQUIRED,
)
from orbit.exceptions import NotFoundError
from orbit.managers.data_store import DataStore
from orbit.managers.events import EventBus, EventType
from orbit.managers.executor import MutationExecutor, SessionState, temp_id
from orbit.managers.template_manager import TemplateManager, plan_duplicate
from orbit.models.catalog import Milestone, Phase
from orbit.models.results import ActionResult
from orbit.models.template import Template, TemplateItem
from orbit.nesting import REFUSE_NOT_NESTED, nest, nest_refusal, unnest
from orbit.reorder import changed_orders, items_in_phase, next_display_order, phase_key, set_block_order
from orbit.validation import has_required_structure, plan_required_items, required_item_ids, required_phase_ids

logger = logging.getLogger(__name__)


def _prune_phase(template: Template, phase_id: str) -> Template:
    """Drop a phase from a template's block order and sub-phase map.

    Sub-phases of the dropped phase move back to top level.
    """
    sub_phase_map = {
        child: parent
        for child, parent in template.sub_phase_map.items()
        if child != phase_id and parent != phase_id
    }
    block_order = {
        parent: [child for child in children if child != phase_id]
        for parent, children in template.block_order.items()
        if parent != phase_id
    }
    return template.model_copy(update={"sub_phase_map": sub_phase_map, "block_order": block_order})


class BuilderSession:
    """
    Editing session over the templates of one storage scope.

    Usage:
        session = BuilderSession(store, TemplateManager(store, bus), bus)
        session.load()
        session.add_milestone_to_phase(phase.id, milestone.id)
        result = session.remove_milestone(item.id)
        if result.blocked:
            print(result.reason)
    """

    def __init__(
        self,
        store: DataStore,
        templates: TemplateManager,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        """
        Initialize BuilderSession.

        Args:
            store: DataStore for the active scope.
            templates: TemplateManager over the same store.
            event_bus: Bus receiving audit and mutation.failed events.
        """
        self.store = store
        self.templates = templates
        self.event_bus = event_bus
        self.state = SessionState()
        self.phases: List[Phase] = []
        self.milestones: List[Milestone] = []
        self.executor = MutationExecutor(self, event_bus)
        self._required_cache: Optional[Tuple[object, object, object, Set[str], Set[str]]] = None

    # =========================================================================
    # Loading and selection
    # =========================================================================

    def refresh_catalog(self) -> None:
        """Re-read the active phases and milestones."""
        self.phases = [p for p in self.store.list_phases() if p.is_active]
        self.milestones = [m for m in self.store.list_milestones() if m.is_active]

    def load(self, template_id: Optional[str] = None) -> None:
        """
        Load the catalog and select a template.

        Without an explicit id the default template is selected, or the first
        active one when no default exists.
        """
        if template_id is None:
            active = self.templates.list_active()
            default = next((t for t in active if t.is_default), None)
            chosen = default or (active[0] if active else None)
            template_id = chosen.id if chosen else None
        self.select_template(template_id)

    def select_template(self, template_id: Optional[str]) -> None:
        """
        Switch the working template.

        Any optimistic state for the previous template is discarded and the
        items are reloaded from storage. Writes still in flight for the old
        template will find a new generation and be dropped.

        Raises:
            NotFoundError: If template_id is not an active template.
        """
        self.refresh_catalog()
        templates = tuple(self.templates.list_active())
        if template_id is not None and not any(t.id == template_id for t in templates):
            raise NotFoundError(f"Template '{template_id}' not found.")

        items = tuple(self.templates.load_items(template_id)) if template_id else ()
        builder = builder_reducer(BuilderState(), SetItems(items))
        selected = next((t for t in templates if t.id == template_id), None)
        if selected is not None:
            builder = builder_reducer(builder, SetAttachedPhases(self._structural_phase_ids(selected)))
        self.state = SessionState(
            templates=templates,
            selected_template_id=template_id,
            builder=builder,
            generation=self.state.generation + 1,
        )
        logger.debug("Selected template %s", template_id, extra={"template_id": template_id})

    def _structural_phase_ids(self, template: Template) -> FrozenSet[str]:
        """Active phases a template references through its sub-phase map or block order."""
        referenced = set(template.sub_phase_map) | set(template.sub_phase_map.values()) | set(template.block_order)
        return frozenset(p.id for p in self.phases if p.id in referenced)

    def reload(self) -> None:
        """Re-read the selected template from storage, keeping attached phases."""
        self.refresh_catalog()
        templates = tuple(self.templates.list_active())
        selected = self.state.selected_template_id
        if selected is not None and not any(t.id == selected for t in templates):
            selected = None
        items = tuple(self.templates.load_items(selected)) if selected else ()
        phase_ids = {p.id for p in self.phases}
        attached = frozenset(p for p in self.state.builder.attached_phase_ids if p in phase_ids)
        template = next((t for t in templates if t.id == selected), None)
        if template is not None:
            attached |= self._structural_phase_ids(template)
        self.state = dataclasses.replace(
            self.state,
            templates=templates,
            selected_template_id=selected,
            builder=BuilderState(items=items, attached_phase_ids=attached),
        )

    # =========================================================================
    # Derived views
    # =========================================================================

    @property
    def selected_template(self) -> Optional[Template]:
        return self.state.selected_template

    @property
    def template_list(self) -> Tuple[Template, ...]:
        return self.state.templates

    @property
    def items(self) -> List[TemplateItem]:
        """Working items of the selected template in display order."""
        return sorted(self.state.builder.items, key=lambda i: i.display_order)

    @property
    def attached_phase_ids(self) -> FrozenSet[str]:
        return self.state.builder.attached_phase_ids

    @property
    def assigned_phases(self) -> List[Phase]:
        """Phases shown in the template, in catalog order."""
        assigned = self.state.builder.assigned_phase_ids
        return [p for p in self.phases if p.id in assigned]

    @property
    def available_phases(self) -> List[Phase]:
        """Active phases not yet in the template."""
        assigned = self.state.builder.assigned_phase_ids
        return [p for p in self.phases if p.id not in assigned]

    def items_for_phase(self, phase_id: Optional[str]) -> List[TemplateItem]:
        return items_in_phase(self.state.builder.items, phase_id)

    def _required_sets(self) -> Tuple[Set[str], Set[str]]:
        # Recomputed only when the items tuple or the catalog lists change.
        items = self.state.builder.items
        cache = self._required_cache
        if cache is not None and cache[0] is items and cache[1] is self.phases and cache[2] is self.milestones:
            return cache[3], cache[4]
        item_ids = required_item_ids(self.phases, self.milestones, items)
        phase_ids = required_phase_ids(self.phases, self.milestones, items)
        self._required_cache = (items, self.phases, self.milestones, item_ids, phase_ids)
        return item_ids, phase_ids

    @property
    def required_item_ids(self) -> Set[str]:
        return self._required_sets()[0]

    @property
    def required_phase_ids(self) -> Set[str]:
        return self._required_sets()[1]

    @property
    def has_required_structure(self) -> bool:
        return has_required_structure(self.phases, self.milestones, self.state.builder.items)

    def _require_phase(self, phase_id: str) -> None:
        if not any(p.id == phase_id for p in self.phases):
            raise NotFoundError(f"Phase '{phase_id}' not found.")

    def _audit(self, event_type: EventType, entity: str, entity_id: str, old=None, new=None) -> None:
        if self.event_bus is not None:
            self.event_bus.audit(event_type, entity, entity_id, old_value=old, new_value=new)

    # =========================================================================
    # Item operations
    # =========================================================================

    def add_phase_to_template(self, phase_id: str) -> ActionResult:
        """Show an empty phase in the template. Nothing is persisted until it gets a milestone."""
        template = self.selected_template
        if template is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)
        self._require_phase(phase_id)
        self.state = self.state.dispatch(AttachPhase(phase_id))
        return ActionResult.ok(phase_id)

    def add_milestone_to_phase(self, phase_id: Optional[str], milestone_id: str) -> ActionResult:
        """
        Place a milestone at the end of a phase.

        The same milestone may sit in two different phases (a shared
        boundary); placing it twice in one phase is refused.

        Args:
            phase_id: Target phase, or None / "unassigned" for the unassigned bucket.
            milestone_id: Active milestone to place.

        Returns:
            ActionResult whose value is the stored TemplateItem.
        """
        template = self.selected_template
        if template is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)
        key = phase_key(phase_id)
        if not any(m.id == milestone_id for m in self.milestones):
            raise NotFoundError(f"Milestone '{milestone_id}' not found.")
        if key is not None:
            self._require_phase(key)
        if self.state.builder.has_placement(key, milestone_id):
            return ActionResult.refuse(VALIDATION_DUPLICATE_PLACEMENT)

        placeholder = TemplateItem(
            id=temp_id(),
            template_id=template.id,
            milestone_id=milestone_id,
            phase_id=key,
            display_order=next_display_order(self.state.builder.items, key),
        )
        stored = self.executor.execute(
            "add_milestone_to_phase",
            optimistic=lambda s: s.dispatch(AddItem(placeholder)),
            persist=lambda: self.store.insert_item(placeholder),
            reconcile=lambda s, real: s.replace_item(placeholder.id, real),
        )
        self._audit(EventType.CREATED, TEMPLATE_ITEM_ENTITY, stored.id, new=stored.model_dump(mode="json"))
        return ActionResult.ok(stored)

    def remove_milestone(self, item_id: str) -> ActionResult:
        """
        Remove one placement from the template.

        Refused for items that realize the required structure. The phase
        stays in the template even when this was its last milestone.
        """
        item = self.state.builder.get_item(item_id)
        if item is None:
            raise NotFoundError(f"Template item '{item_id}' not found.")
        if item_id in self.required_item_ids:
            return ActionResult.refuse(VALIDATION_REQUIRED_MILESTONE)

        actions = [RemoveItem(item_id)]
        if item.phase_id is not None:
            actions.append(AttachPhase(item.phase_id))
        self.executor.execute(
            "remove_milestone",
            optimistic=lambda s: s.dispatch(*actions),
            persist=lambda: self.store.delete_item(item_id),
        )
        self._audit(EventType.DELETED, TEMPLATE_ITEM_ENTITY, item_id, old=item.model_dump(mode="json"))
        return ActionResult.ok(item)

    def remove_phase_from_template(self, phase_id: Optional[str]) -> ActionResult:
        """
        Detach a phase and delete all of its placements in this template.

        The phase itself stays in the catalog. Required phases are refused.
        None or "unassigned" clears the unassigned bucket.

        Returns:
            ActionResult with count = number of placements deleted.
        """
        template = self.selected_template
        if template is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)
        key = phase_key(phase_id)
        if key is not None:
            self._require_phase(key)
        if key in self.required_phase_ids:
            return ActionResult.refuse(VALIDATION_REQUIRED_PHASE)

        pruned = _prune_phase(template, key) if key is not None else template
        structure_changed = (
            pruned.sub_phase_map != template.sub_phase_map or pruned.block_order != template.block_order
        )
        actions = [BulkRemoveByPhase(key)]
        if key is not None:
            actions.append(DetachPhase(key))

        def persist() -> int:
            deleted = self.store.delete_items_by_phase(template.id, key)
            if structure_changed:
                self.templates.update_structure(
                    template.id, sub_phase_map=pruned.sub_phase_map, block_order=pruned.block_order
                )
            return deleted

        deleted = self.executor.execute(
            "remove_phase_from_template",
            optimistic=lambda s: s.with_template(pruned).dispatch(*actions),
            persist=persist,
        )
        self._audit(EventType.DELETED, TEMPLATE_PHASE_ENTITY, key or UNASSIGNED_PHASE, old={"items": deleted})
        return ActionResult.ok(key, count=deleted)

    def reorder_items_in_phase(self, phase_id: Optional[str], active_id: str, over_id: str) -> ActionResult:
        """
        Move one item onto another's position inside a phase.

        Only items whose display_order actually changed are written.

        Returns:
            ActionResult with count = number of items rewritten (0 for a no-op).
        """
        before = self.state.builder.items
        after = builder_reducer(self.state.builder, MoveItemWithinPhase(phase_id, active_id, over_id))
        if after is self.state.builder:
            return ActionResult.ok({}, count=0)

        changes = changed_orders(before, after.items)

        def persist() -> int:
            for item_id, display_order in changes.items():
                self.store.update_item_order(item_id, display_order)
            return len(changes)

        written = self.executor.execute(
            "reorder_items_in_phase",
            optimistic=lambda s: s.dispatch(MoveItemWithinPhase(phase_id, active_id, over_id)),
            persist=persist,
        )
        self._audit(EventType.REORDERED, TEMPLATE_PHASE_ENTITY, phase_id or UNASSIGNED_PHASE, new=changes)
        return ActionResult.ok(changes, count=written)

    # =========================================================================
    # Template structure
    # =========================================================================

    def _structure_update(self, operation: str, template: Template, **fields) -> Template:
        updated = template.model_copy(update=fields)
        return self.executor.execute(
            operation,
            optimistic=lambda s: s.with_template(updated),
            persist=lambda: self.templates.update_structure(template.id, **fields),
            reconcile=lambda s, stored: s.with_template(stored),
        )

    def nest_phase_as_sub_phase(self, child_phase_id: str, parent_phase_id: str) -> ActionResult:
        """
        Nest a phase one level under another, for this template only.

        Refusals leave the session untouched.

        Raises:
            NotFoundError: If either phase is not an active catalog phase.
        """
        template = self.selected_template
        if template is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)
        self._require_phase(child_phase_id)
        self._require_phase(parent_phase_id)
        reason = nest_refusal(template.sub_phase_map, child_phase_id, parent_phase_id)
        if reason is not None:
            return ActionResult.refuse(reason)

        sub_phase_map = nest(template.sub_phase_map, child_phase_id, parent_phase_id)
        updated = template.model_copy(update={"sub_phase_map": sub_phase_map})
        stored = self.executor.execute(
            "nest_phase_as_sub_phase",
            optimistic=lambda s: s.with_template(updated).dispatch(AttachPhase(child_phase_id)),
            persist=lambda: self.templates.update_structure(template.id, sub_phase_map=sub_phase_map),
            reconcile=lambda s, real: s.with_template(real),
        )
        return ActionResult.ok(stored)

    def remove_sub_phase(self, child_phase_id: str) -> ActionResult:
        """Un-nest a sub-phase and remove it, with its placements, from this template."""
        template = self.selected_template
        if template is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)
        if child_phase_id not in template.sub_phase_map:
            return ActionResult.refuse(REFUSE_NOT_NESTED)
        if child_phase_id in self.required_phase_ids:
            return ActionResult.refuse(VALIDATION_REQUIRED_PHASE)

        sub_phase_map = unnest(template.sub_phase_map, child_phase_id)
        updated = template.model_copy(update={"sub_phase_map": sub_phase_map})

        def persist() -> Template:
            stored = self.templates.update_structure(template.id, sub_phase_map=sub_phase_map)
            self.store.delete_items_by_phase(template.id, child_phase_id)
            return stored

        stored = self.executor.execute(
            "remove_sub_phase",
            optimistic=lambda s: s.with_template(updated).dispatch(
                BulkRemoveByPhase(child_phase_id), DetachPhase(child_phase_id)
            ),
            persist=persist,
            reconcile=lambda s, real: s.with_template(real),
        )
        return ActionResult.ok(stored)

    def update_block_order(self, parent_phase_id: str, ordered_ids: Sequence[str]) -> ActionResult:
        """Set the rendering order of the children inside one phase block."""
        template = self.selected_template
        if template is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)
        block_order = set_block_order(template.block_order, parent_phase_id, ordered_ids)
        stored = self._structure_update("update_block_order", template, block_order=block_order)
        return ActionResult.ok(stored)

    # =========================================================================
    # Template operations
    # =========================================================================

    def _resolve(self, template_id: Optional[str]) -> Optional[Template]:
        if template_id is None:
            return self.selected_template
        template = self.state.get_template(template_id)
        if template is None:
            raise NotFoundError(f"Template '{template_id}' not found.")
        return template

    def _commit_new(self, operation: str, placeholder: Template, items: List[TemplateItem], attached: FrozenSet[str]) -> Template:
        """Insert a new template with items and select it."""

        def optimistic(s: SessionState) -> SessionState:
            s = s.with_template(placeholder)
            return dataclasses.replace(
                s,
                selected_template_id=placeholder.id,
                builder=BuilderState(items=tuple(items), attached_phase_ids=attached),
            )

        def reconcile(s: SessionState, stored: Tuple[Template, List[TemplateItem]]) -> SessionState:
            template, stored_items = stored
            s = s.replace_template(placeholder.id, template)
            if template.is_default:
                s = dataclasses.replace(
                    s,
                    templates=tuple(
                        t if t.id == template.id else t.model_copy(update={"is_default": False})
                        for t in s.templates
                    ),
                )
            if s.selected_template_id != template.id:
                return s
            return dataclasses.replace(
                s,
                builder=BuilderState(items=tuple(stored_items), attached_phase_ids=s.builder.attached_phase_ids),
            )

        template, _ = self.executor.execute(
            operation,
            optimistic=optimistic,
            persist=lambda: self.templates.insert(placeholder, items),
            reconcile=reconcile,
        )
        return template

    def create_template(self, name: str, description: Optional[str] = None) -> ActionResult:
        """
        Create a template seeded with the required structure and select it.

        Required phases and milestones missing from the catalog are skipped.

        Returns:
            ActionResult whose value is the stored Template.
        """
        name = name.strip()
        if not name:
            return ActionResult.refuse(VALIDATION_TEMPLATE_NAME_REQUIRED)

        placeholder = Template(
            id=temp_id(),
            name=name,
            description=description,
            is_default=not self.state.templates,
        )
        planned, attached = plan_required_items(self.phases, self.milestones, placeholder.id)
        items = [item.model_copy(update={"id": temp_id()}) for item in planned]
        template = self._commit_new("create_template", placeholder, items, frozenset(attached))
        return ActionResult.ok(template)

    def duplicate_template(self, template_id: Optional[str] = None) -> ActionResult:
        """
        Copy a template, its items, block order and sub-phase map, then select the copy.

        The copy is named "<name> (Copy)" and is never the default.
        """
        source = self._resolve(template_id)
        if source is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)

        if source.id == self.state.selected_template_id:
            source_items = list(self.items)
            attached = self.state.builder.attached_phase_ids
        else:
            source_items = self.templates.load_items(source.id)
            attached = frozenset()

        placeholder, items = plan_duplicate(
            source, source_items, temp_id(), [temp_id() for _ in source_items]
        )
        template = self._commit_new("duplicate_template", placeholder, items, attached)
        return ActionResult.ok(template)

    def rename_template(self, name: str, template_id: Optional[str] = None) -> ActionResult:
        template = self._resolve(template_id)
        if template is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)
        name = name.strip()
        if not name:
            return ActionResult.refuse(VALIDATION_TEMPLATE_NAME_REQUIRED)

        renamed = template.model_copy(update={"name": name})
        stored = self.executor.execute(
            "rename_template",
            optimistic=lambda s: s.with_template(renamed),
            persist=lambda: self.templates.rename(template.id, name),
            reconcile=lambda s, real: s.with_template(real),
        )
        return ActionResult.ok(stored)

    def set_default_template(self, template_id: Optional[str] = None) -> ActionResult:
        """Make a template the scope default, clearing the flag on every other template."""
        template = self._resolve(template_id)
        if template is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)

        def optimistic(s: SessionState) -> SessionState:
            templates = tuple(
                t.model_copy(update={"is_default": t.id == template.id}) for t in s.templates
            )
            return dataclasses.replace(s, templates=templates)

        stored = self.executor.execute(
            "set_default_template",
            optimistic=optimistic,
            persist=lambda: self.templates.set_default(template.id),
        )
        return ActionResult.ok(stored)

    def archive_template(self, template_id: Optional[str] = None) -> ActionResult:
        """
        Archive a template.

        Refused for the default template and for templates with active
        assignments (the count is returned). Archiving an archived template
        is a no-op. When the selected template is archived the session
        switches to the default, or the first remaining template.
        """
        if template_id is not None and self.state.get_template(template_id) is None:
            stored = self.templates.get(template_id)
            if not stored.is_active:
                return ActionResult.ok(stored)
        template = self._resolve(template_id)
        if template is None:
            return ActionResult.refuse(VALIDATION_NO_TEMPLATE)

        refusal = self.templates.archive_refusal(template)
        if refusal is not None:
            return refusal

        was_selected = template.id == self.state.selected_template_id

        def optimistic(s: SessionState) -> SessionState:
            remaining = tuple(t for t in s.templates if t.id != template.id)
            if not was_selected:
                return dataclasses.replace(s, templates=remaining)
            return dataclasses.replace(
                s, templates=remaining, selected_template_id=None, builder=BuilderState()
            )

        archived = self.executor.execute(
            "archive_template",
            optimistic=optimistic,
            persist=lambda: self.templates.archive(template.id),
        )

        if was_selected:
            remaining = self.state.templates
            fallback = next((t for t in remaining if t.is_default), None) or (remaining[0] if remaining else None)
            self.select_template(fallback.id if fallback else None)
        return ActionResult.ok(archived)

    def assignment_counts(self) -> Dict[str, int]:
        return self.templates.assignment_counts()

"""
Mutation executor.

Every structural operation runs as one snapshot/apply/persist/reconcile
round trip:

    snapshot = holder.state
    holder.state = optimistic(snapshot)        # temp ids for new rows
    result = persist()                         # the real write
    holder.state = reconcile(holder.state, result)   # temp ids -> real ids

A failed write puts the snapshot back (or reloads from storage when the
target no longer exists) and re-raises. Nothing optimistic survives a failed
round trip.
"""

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Tuple, TypeVar

from orbit.builder import BuilderAction, BuilderState, builder_reducer
from orbit.constants import get_temp_id_prefix
from orbit.exceptions import NotFoundError
from orbit.managers.events import Event, EventBus, EventType
from orbit.models.template import Template, TemplateItem

logger = logging.getLogger(__name__)

R = TypeVar("R")


def temp_id() -> str:
    """Locally generated id for a row that has not been persisted yet."""
    return f"{get_temp_id_prefix()}{uuid.uuid4().hex}"


def is_temp_id(record_id: str) -> bool:
    return record_id.startswith(get_temp_id_prefix())


@dataclass(frozen=True)
class SessionState:
    """Everything a builder session can roll back in one step.

    generation changes only when the selected template is switched; a write
    that returns under a different generation is stale.
    """

    templates: Tuple[Template, ...] = ()
    selected_template_id: Optional[str] = None
    builder: BuilderState = field(default_factory=BuilderState)
    generation: int = 0

    @property
    def selected_template(self) -> Optional[Template]:
        return self.get_template(self.selected_template_id) if self.selected_template_id else None

    def get_template(self, template_id: str) -> Optional[Template]:
        for template in self.templates:
            if template.id == template_id:
                return template
        return None

    def dispatch(self, *actions: BuilderAction) -> "SessionState":
        builder = self.builder
        for action in actions:
            builder = builder_reducer(builder, action)
        return dataclasses.replace(self, builder=builder)

    def with_template(self, template: Template) -> "SessionState":
        """Replace the template with the same id, or append it."""
        if self.get_template(template.id) is None:
            return dataclasses.replace(self, templates=self.templates + (template,))
        templates = tuple(template if t.id == template.id else t for t in self.templates)
        return dataclasses.replace(self, templates=templates)

    def replace_template(self, old_id: str, template: Template) -> "SessionState":
        """Swap a template (e.g. its temp placeholder) for another, fixing the selection."""
        templates = tuple(template if t.id == old_id else t for t in self.templates)
        selected = template.id if self.selected_template_id == old_id else self.selected_template_id
        return dataclasses.replace(self, templates=templates, selected_template_id=selected)

    def replace_item(self, old_id: str, item: TemplateItem) -> "SessionState":
        """Swap one item (e.g. its temp placeholder) for the persisted row."""
        items = tuple(i for i in self.builder.items if i.id != old_id) + (item,)
        return dataclasses.replace(
            self,
            builder=BuilderState(items=items, attached_phase_ids=self.builder.attached_phase_ids),
        )


class StateHolder(Protocol):
    """What the executor needs from a session."""

    state: SessionState

    def reload(self) -> None: ...


class MutationExecutor:
    """
    Runs optimistic mutations against a StateHolder.

    Usage:
        executor = MutationExecutor(session, event_bus)
        inserted = executor.execute(
            "add_milestone_to_phase",
            optimistic=lambda s: s.dispatch(AddItem(placeholder)),
            persist=lambda: store.insert_item(placeholder),
            reconcile=lambda s, real: s.replace_item(placeholder.id, real),
        )
    """

    def __init__(self, holder: StateHolder, event_bus: Optional[EventBus] = None) -> None:
        """
        Initialize MutationExecutor.

        Args:
            holder: Session whose state is snapshotted and replaced.
            event_bus: Bus that receives mutation.failed events.
        """
        self.holder = holder
        self.event_bus = event_bus

    def execute(
        self,
        operation: str,
        optimistic: Callable[[SessionState], SessionState],
        persist: Callable[[], R],
        reconcile: Optional[Callable[[SessionState, R], SessionState]] = None,
    ) -> R:
        """Apply optimistically, persist, then reconcile or roll back.

        Args:
            operation: Operation name for logs and failure events.
            optimistic: Builds the next state from the snapshot.
            persist: Performs the persistent write(s) and returns their result.
            reconcile: Folds the write result into the current state.

        Returns:
            Whatever persist returned.

        Raises:
            NotFoundError: The target vanished; state was reloaded from storage.
            TransientIOError: The write failed; state was restored to the snapshot.
        """
        snapshot = self.holder.state
        self.holder.state = optimistic(snapshot)

        try:
            result = persist()
        except NotFoundError as e:
            self._fail(operation, snapshot, e, reload=True)
            raise
        except Exception as e:
            self._fail(operation, snapshot, e, reload=False)
            raise

        if self.holder.state.generation != snapshot.generation:
            logger.warning(
                "Dropping stale result of %s: selected template changed mid-flight",
                operation,
                extra={"operation": operation},
            )
            return result

        if reconcile is not None:
            self.holder.state = reconcile(self.holder.state, result)
        return result

    def _fail(self, operation: str, snapshot: SessionState, error: Exception, reload: bool) -> None:
        if self.holder.state.generation == snapshot.generation:
            if reload:
                self.holder.reload()
            else:
                self.holder.state = snapshot

        logger.warning(
            "%s failed; %s",
            operation,
            "reloaded from storage" if reload else "rolled back",
            extra={"operation": operation, "error": str(error)},
        )
        if self.event_bus is not None:
            self.event_bus.publish(
                Event(
                    type=EventType.MUTATION_FAILED,
                    data={"operation": operation, "error": str(error)},
                )
            )

"""
Tests for MutationExecutor.

Tests cover:
- Optimistic apply followed by reconcile
- Rollback on write failure, with a mutation.failed event
- Reload on NotFoundError
- Stale results after a template switch
"""

import dataclasses

import pytest

from orbit.builder import AddItem, BuilderState
from orbit.exceptions import NotFoundError, StorageError
from orbit.managers.events import EventType
from orbit.managers.executor import MutationExecutor, SessionState, is_temp_id, temp_id


class FakeHolder:
    """Minimal StateHolder recording reloads."""

    def __init__(self, state: SessionState) -> None:
        self.state = state
        self.reloads = 0

    def reload(self) -> None:
        self.reloads += 1
        self.state = dataclasses.replace(self.state, builder=BuilderState())


@pytest.fixture
def holder(catalog_builder):
    item = catalog_builder.item("m1", "p1", 1, item_id="real-1")
    return FakeHolder(SessionState(builder=BuilderState(items=(item,)), generation=1))


@pytest.fixture
def executor(holder, event_bus):
    return MutationExecutor(holder, event_bus)


@pytest.fixture
def placeholder(catalog_builder):
    return catalog_builder.item("m2", "p1", 2, item_id=temp_id())


class TestTempIds:
    """Test temp id helpers."""

    def test_prefix(self):
        assert temp_id().startswith("temp-")
        assert is_temp_id(temp_id())
        assert not is_temp_id("3f2b")

    def test_unique(self):
        assert temp_id() != temp_id()


class TestExecute:
    """Test the optimistic round trip."""

    def test_reconcile_replaces_temp_id(self, executor, holder, placeholder):
        real = placeholder.model_copy(update={"id": "real-2"})
        seen = {}

        def persist():
            seen["optimistic"] = {i.id for i in holder.state.builder.items}
            return real

        result = executor.execute(
            "add",
            optimistic=lambda s: s.dispatch(AddItem(placeholder)),
            persist=persist,
            reconcile=lambda s, r: s.replace_item(placeholder.id, r),
        )

        assert result is real
        assert placeholder.id in seen["optimistic"]
        assert {i.id for i in holder.state.builder.items} == {"real-1", "real-2"}

    def test_rollback_on_storage_error(self, executor, holder, placeholder, recorder):
        snapshot = holder.state

        def persist():
            raise StorageError("disk full")

        with pytest.raises(StorageError):
            executor.execute("add", optimistic=lambda s: s.dispatch(AddItem(placeholder)), persist=persist)

        assert holder.state is snapshot
        failed = recorder.of_type(EventType.MUTATION_FAILED)
        assert len(failed) == 1
        assert failed[0].data["operation"] == "add"
        assert "disk full" in failed[0].data["error"]

    def test_rollback_on_unexpected_error(self, executor, holder, placeholder):
        snapshot = holder.state

        def persist():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            executor.execute("add", optimistic=lambda s: s.dispatch(AddItem(placeholder)), persist=persist)
        assert holder.state is snapshot

    def test_not_found_reloads(self, executor, holder, placeholder):
        def persist():
            raise NotFoundError("gone")

        with pytest.raises(NotFoundError):
            executor.execute("add", optimistic=lambda s: s.dispatch(AddItem(placeholder)), persist=persist)

        assert holder.reloads == 1
        assert holder.state.builder.items == ()

    def test_stale_result_is_dropped(self, executor, holder, placeholder, caplog):
        switched = SessionState(builder=BuilderState(), generation=2)

        def persist():
            # The user switched templates while the write was in flight.
            holder.state = switched
            return placeholder.model_copy(update={"id": "real-2"})

        with caplog.at_level("WARNING", logger="orbit.managers.executor"):
            executor.execute(
                "add",
                optimistic=lambda s: s.dispatch(AddItem(placeholder)),
                persist=persist,
                reconcile=lambda s, r: s.replace_item(placeholder.id, r),
            )

        assert holder.state is switched
        assert "stale" in caplog.text

    def test_stale_failure_does_not_roll_back(self, executor, holder, placeholder):
        switched = SessionState(builder=BuilderState(), generation=2)

        def persist():
            holder.state = switched
            raise StorageError("late failure")

        with pytest.raises(StorageError):
            executor.execute("add", optimistic=lambda s: s.dispatch(AddItem(placeholder)), persist=persist)
        assert holder.state is switched


class TestSessionState:
    """Test SessionState helpers used by reconcile."""

    def test_replace_template_fixes_selection(self):
        from orbit.models.template import Template

        placeholder = Template(id="temp-1", name="New")
        state = SessionState(templates=(placeholder,), selected_template_id="temp-1")
        real = placeholder.model_copy(update={"id": "real"})
        updated = state.replace_template("temp-1", real)
        assert updated.selected_template_id == "real"
        assert updated.templates == (real,)

    def test_with_template_appends_or_replaces(self):
        from orbit.models.template import Template

        template = Template(id="a", name="A")
        state = SessionState().with_template(template)
        assert state.templates == (template,)
        renamed = template.model_copy(update={"name": "B"})
        assert state.with_template(renamed).templates == (renamed,)

"""
Test fixtures for the Orbit test suite.

Provides:
- Temporary directory fixtures (isolated from any real .orbit/)
- Catalog builders for creating milestones, phases and template items
- Wired storage, data store, managers and builder session
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional

import pytest

from orbit.constants import REQUIRED_MILESTONE_NAMES, REQUIRED_PHASE_NAMES, reset_config_manager
from orbit.managers.builder_session import BuilderSession
from orbit.managers.catalog_manager import CatalogManager
from orbit.managers.data_store import DataStore
from orbit.managers.events import Event, EventBus, EventListener, EventType
from orbit.managers.storage_manager import StorageManager
from orbit.managers.template_manager import TemplateManager
from orbit.models.catalog import Milestone, Phase
from orbit.models.template import TemplateItem


# =============================================================================
# Temporary Directory Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_config() -> Generator[None, None, None]:
    """Drop the ConfigManager singleton so no test sees another test's config."""
    reset_config_manager()
    yield
    reset_config_manager()


@pytest.fixture(autouse=True)
def detach_log_handlers() -> Generator[None, None, None]:
    """Close file handlers that OrbitCore attached to the package logger."""
    yield
    package_logger = logging.getLogger("orbit")
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test isolation."""
    temp_path = Path(tempfile.mkdtemp(prefix="orbit_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def data_dir(temp_dir: Path) -> Path:
    """Path to a not-yet-created .orbit/ data directory."""
    return temp_dir / ".orbit"


# =============================================================================
# Catalog Builders
# =============================================================================


class CatalogBuilder:
    """Helper class for building catalog records and template items for testing."""

    @staticmethod
    def phase(internal_name: str, display_order: int = 0, **fields) -> Phase:
        return Phase(
            internal_name=internal_name,
            display_name=internal_name.replace("_", " ").title(),
            display_order=display_order,
            **fields,
        )

    @staticmethod
    def milestone(internal_name: str, display_order: int = 0, **fields) -> Milestone:
        return Milestone(
            internal_name=internal_name,
            display_name=internal_name.replace("_", " ").title(),
            display_order=display_order,
            **fields,
        )

    @staticmethod
    def item(
        milestone_id: str,
        phase_id: Optional[str],
        display_order: int,
        template_id: str = "template-1",
        item_id: Optional[str] = None,
    ) -> TemplateItem:
        fields = dict(
            template_id=template_id,
            milestone_id=milestone_id,
            phase_id=phase_id,
            display_order=display_order,
        )
        if item_id:
            fields["id"] = item_id
        return TemplateItem(**fields)

    @classmethod
    def required_phases(cls) -> List[Phase]:
        return [cls.phase(name, order) for order, name in enumerate(REQUIRED_PHASE_NAMES, 1)]

    @classmethod
    def required_milestones(cls) -> List[Milestone]:
        return [cls.milestone(name, order) for order, name in enumerate(REQUIRED_MILESTONE_NAMES, 1)]


@pytest.fixture
def catalog_builder() -> CatalogBuilder:
    """Provide the catalog builder."""
    return CatalogBuilder()


# =============================================================================
# Storage and Manager Fixtures
# =============================================================================


@pytest.fixture
def storage(data_dir: Path) -> StorageManager:
    return StorageManager(data_dir, "facility")


@pytest.fixture
def store(storage: StorageManager) -> DataStore:
    return DataStore(storage)


class RecordingListener(EventListener):
    """Listener that keeps every event it receives."""

    def __init__(self, event_types: Optional[List[EventType]] = None) -> None:
        self.events: List[Event] = []
        self._types = event_types or list(EventType)

    @property
    def subscribed_events(self) -> List[EventType]:
        return self._types

    def handle(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[Event]:
        return [e for e in self.events if e.type == event_type]


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(event_bus: EventBus) -> RecordingListener:
    listener = RecordingListener()
    event_bus.subscribe(listener)
    return listener


@pytest.fixture
def catalog(store: DataStore, event_bus: EventBus) -> CatalogManager:
    return CatalogManager(store, event_bus)


@pytest.fixture
def template_manager(store: DataStore, event_bus: EventBus) -> TemplateManager:
    return TemplateManager(store, event_bus)


@pytest.fixture
def seeded_catalog(store: DataStore, catalog_builder: CatalogBuilder) -> Dict[str, Dict[str, object]]:
    """Store the required catalog plus one extra phase and milestone.

    Returns:
        {"phases": {internal_name: Phase}, "milestones": {internal_name: Milestone}}
    """
    phases = catalog_builder.required_phases() + [catalog_builder.phase("recovery", 5)]
    milestones = catalog_builder.required_milestones() + [catalog_builder.milestone("anesthesia_start", 8)]
    for phase in phases:
        store.save_phase(phase)
    for milestone in milestones:
        store.save_milestone(milestone)
    return {
        "phases": {p.internal_name: p for p in phases},
        "milestones": {m.internal_name: m for m in milestones},
    }


@pytest.fixture
def session(store: DataStore, template_manager: TemplateManager, event_bus: EventBus, seeded_catalog) -> BuilderSession:
    """A loaded session over the seeded catalog with no templates yet."""
    session = BuilderSession(store, template_manager, event_bus)
    session.load()
    return session


@pytest.fixture
def standard_session(session: BuilderSession) -> BuilderSession:
    """A session with a freshly created "Standard" template selected."""
    result = session.create_template("Standard")
    assert not result.blocked
    return session

"""
OrbitCore - Entry point wiring the Orbit template engine together.

Orchestrates manager classes for one data directory and storage scope.
Uses EventBus for audit notifications.
"""

import logging
from pathlib import Path
from typing import List, Optional

from orbit.constants import (
    MILESTONE_KIND,
    PHASE_KIND,
    REQUIRED_MILESTONE_NAMES,
    REQUIRED_PHASE_NAMES,
    VALID_SCOPES,
    get_config_manager,
    get_default_scope,
    get_log_level,
)
from orbit.exceptions import ConfigurationError
from orbit.logging import setup_logging
from orbit.managers import (
    AuditLogListener,
    BuilderSession,
    CatalogManager,
    DataStore,
    EventBus,
    StorageManager,
    TemplateManager,
)
from orbit.models.catalog import CatalogItem

logger = logging.getLogger(__name__)


def _display_name(internal_name: str) -> str:
    return internal_name.replace("_", " ").title()


class OrbitCore:
    """
    Core class wiring storage, catalog, templates and the builder session.

    Orchestrates manager classes:
    - StorageManager / DataStore: Persistence for the selected scope
    - CatalogManager: Milestone and phase catalog
    - TemplateManager: Template records
    - BuilderSession: Editing operations on the selected template
    - EventBus: Audit notifications
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        scope: Optional[str] = None,
        audit_enabled: bool = True,
    ):
        """
        Initialize the OrbitCore with a data directory.

        Args:
            data_dir: Path to the data directory. Defaults to .orbit/ in current directory.
            scope: Storage scope (facility or admin). Defaults to the configured scope.
            audit_enabled: Whether audit events are written to the orbit.audit logger.
        """
        self.data_dir = data_dir if data_dir else Path(".orbit")
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.config = get_config_manager(reset=True, data_dir=self.data_dir)

        self.scope = scope or get_default_scope()
        if self.scope not in VALID_SCOPES:
            raise ConfigurationError(f"Unknown scope '{self.scope}'. Expected one of {VALID_SCOPES}.")

        setup_logging(self.data_dir, get_log_level())

        self.storage = StorageManager(self.data_dir, self.scope)
        self.store = DataStore(self.storage)

        # Set up event-driven architecture
        self.event_bus = EventBus()
        if audit_enabled:
            self.audit_listener = AuditLogListener()
            self.event_bus.subscribe(self.audit_listener)

        self.catalog = CatalogManager(self.store, self.event_bus)
        self.templates = TemplateManager(self.store, self.event_bus)
        self.session = BuilderSession(self.store, self.templates, self.event_bus)
        self.session.load()

    def seed_required_catalog(self) -> List[CatalogItem]:
        """
        Create any required phase or milestone missing from the active catalog.

        Returns:
            The entries that were created.
        """
        created: List[CatalogItem] = []
        active_phases = {p.internal_name for p in self.catalog.list_active(PHASE_KIND)}
        for name in REQUIRED_PHASE_NAMES:
            if name not in active_phases:
                created.append(self.catalog.create_phase(_display_name(name), internal_name=name).value)

        active_milestones = {m.internal_name for m in self.catalog.list_active(MILESTONE_KIND)}
        for name in REQUIRED_MILESTONE_NAMES:
            if name not in active_milestones:
                created.append(
                    self.catalog.create_milestone(_display_name(name), internal_name=name).value
                )

        if created:
            logger.info("Seeded %d required catalog entries", len(created))
            self.session.refresh_catalog()
        return created

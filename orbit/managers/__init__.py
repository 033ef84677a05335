"""
Managers for the Orbit template engine.

This package contains focused manager classes that handle specific aspects of Orbit functionality:
- StorageManager: Persistence of JSON table files under the data directory
- DataStore: Canonical reads and writes over one storage scope
- CatalogManager: Milestone and phase catalog, archive and restore
- TemplateManager: Template persistence, default promotion, archive guard
- MutationExecutor: Optimistic apply, persist, reconcile or roll back
- BuilderSession: Editing operations on the selected template
- EventBus: Audit notifications and mutation failures
"""

from orbit.managers.storage_manager import StorageManager
from orbit.managers.data_store import DataStore
from orbit.managers.events import (
    AuditEvent,
    AuditLogListener,
    Event,
    EventBus,
    EventListener,
    EventType,
)
from orbit.managers.catalog_manager import CatalogManager
from orbit.managers.template_manager import TemplateManager
from orbit.managers.executor import MutationExecutor, SessionState
from orbit.managers.builder_session import BuilderSession
from orbit.exceptions import StorageError

__all__ = [
    "StorageManager",
    "StorageError",
    "DataStore",
    "AuditEvent",
    "AuditLogListener",
    "Event",
    "EventBus",
    "EventListener",
    "EventType",
    "CatalogManager",
    "TemplateManager",
    "MutationExecutor",
    "SessionState",
    "BuilderSession",
]

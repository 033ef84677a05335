"""
Custom exceptions for the Orbit template engine.
"""


class OrbitError(Exception):
    """Base exception for all Orbit-related errors."""
    pass


class ValidationError(OrbitError):
    """Raised when validation fails for an item or operation.

    Builder and repository operations return refusals as ActionResult
    instead of raising this; it is reserved for malformed input at the
    storage and CLI boundaries.
    """
    pass


class NotFoundError(OrbitError):
    """Raised when a referenced id does not exist in storage."""
    pass


class ConflictError(OrbitError):
    """Raised when an internal name collides with an active catalog entry."""
    pass


class TransientIOError(OrbitError):
    """Raised when a persistent read or write fails and may succeed on retry."""
    pass


class StorageError(TransientIOError):
    """Raised when a storage file cannot be read or written."""
    pass


class ConfigurationError(OrbitError):
    """Raised when there's a configuration or setup issue."""
    pass

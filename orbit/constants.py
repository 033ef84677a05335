"""
Constants for the Orbit template engine.

Note: The configurable constants serve as default fallback values.
Actual values are loaded from <data_dir>/config.json at runtime via ConfigManager.
"""
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

# =============================================================================
# Required Structure (not configurable)
# The minimum phase/milestone layout every new template is seeded with.
# =============================================================================

REQUIRED_PHASE_NAMES: Tuple[str, ...] = ("pre_op", "surgical", "closing", "post_op")

# Ordered placements per phase. "closing" and "closing_complete" each appear
# under two adjacent phases: they are the shared boundary milestones.
REQUIRED_PHASE_MILESTONES: Dict[str, Tuple[str, ...]] = {
    "pre_op": ("patient_in", "prep_drape_start", "prep_drape_complete"),
    "surgical": ("incision", "closing"),
    "closing": ("closing", "closing_complete"),
    "post_op": ("closing_complete", "patient_out"),
}

REQUIRED_MILESTONE_NAMES: Tuple[str, ...] = tuple(
    dict.fromkeys(
        name
        for phase_name in REQUIRED_PHASE_NAMES
        for name in REQUIRED_PHASE_MILESTONES[phase_name]
    )
)

# Bucket key used by the builder for items that are not placed in any phase.
UNASSIGNED_PHASE = "unassigned"

# Catalog kinds
MILESTONE_KIND = "milestone"
PHASE_KIND = "phase"
CATALOG_KINDS = [MILESTONE_KIND, PHASE_KIND]

PAIR_START = "start"
PAIR_END = "end"

# Audit entity names for template structure
TEMPLATE_ENTITY = "template"
TEMPLATE_ITEM_ENTITY = "template_item"
TEMPLATE_PHASE_ENTITY = "template_phase"

# Storage scopes
FACILITY_SCOPE = "facility"
ADMIN_SCOPE = "admin"
VALID_SCOPES = [FACILITY_SCOPE, ADMIN_SCOPE]

# Validation messages (not configurable)
VALIDATION_DISPLAY_NAME_REQUIRED = "Display name is required."
VALIDATION_TEMPLATE_NAME_REQUIRED = "Template name is required."
VALIDATION_REQUIRED_MILESTONE = "This milestone is required and cannot be removed."
VALIDATION_REQUIRED_PHASE = "This phase is required and cannot be removed."
VALIDATION_ARCHIVE_DEFAULT = "Set a different template as default before archiving this one."
VALIDATION_ARCHIVE_ASSIGNED = (
    "This template is assigned to {count} procedure(s). Reassign them before archiving."
)
VALIDATION_DUPLICATE_PLACEMENT = "This milestone is already in this phase."
VALIDATION_NO_TEMPLATE = "No template is selected."

# =============================================================================
# Default Fallback Values
# These are used if config.json doesn't exist or doesn't specify a value.
# =============================================================================

DEFAULT_SCOPE = FACILITY_SCOPE
DEFAULT_DUPLICATE_NAME_SUFFIX = " (Copy)"
DEFAULT_TEMP_ID_PREFIX = "temp-"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_COLOR_KEY = "slate"


# =============================================================================
# Config Loader
# Load values from <data_dir>/config.json at runtime.
# =============================================================================

_config_manager_instance: Optional["ConfigManager"] = None


class ConfigManager:
    """
    Manages loading configuration from a config.json file with fallback to defaults.

    This class is independent of StorageManager to avoid cyclic dependencies.
    StorageManager handles persistence; ConfigManager handles runtime access.

    Usage:
        # With default path (.orbit/config.json)
        config = ConfigManager()
        scope = config.get_str('default_scope', DEFAULT_SCOPE)

        # With a data directory
        config = ConfigManager(data_dir=Path("/srv/orbit"))
        suffix = config.get_str('duplicate_name_suffix', DEFAULT_DUPLICATE_NAME_SUFFIX)
    """

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self._config: Optional[dict] = None
        self._path = (data_dir or Path(".orbit")) / "config.json"

    def _load_config(self) -> dict:
        """Load config from config.json file."""
        if self._config is not None:
            return self._config

        if self._path.exists():
            try:
                with open(self._path, "r") as f:
                    self._config = json.load(f)
            except (json.JSONDecodeError, IOError):
                self._config = {}
        else:
            self._config = {}

        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a config value with fallback to default.

        Args:
            key: Configuration key name.
            default: Default value if key not found.

        Returns:
            Config value or default.
        """
        config = self._load_config()
        return config.get(key, default)

    def get_str(self, key: str, default: str) -> str:
        """Get a string config value with fallback."""
        value = self.get(key, default)
        return str(value) if value is not None else default

    def reload(self) -> dict:
        """Force reload of config from disk."""
        self._config = None
        return self._load_config()


def get_config_manager(reset: bool = False, data_dir: Optional[Path] = None) -> ConfigManager:
    """
    Get the singleton ConfigManager instance.

    Args:
        reset: If True, reset the singleton and create a new instance.
        data_dir: Data directory for a newly created instance.

    Returns:
        ConfigManager singleton instance.
    """
    global _config_manager_instance
    if _config_manager_instance is None or reset:
        _config_manager_instance = ConfigManager(data_dir=data_dir)
    return _config_manager_instance


def reset_config_manager() -> None:
    """Reset the singleton ConfigManager instance (useful for testing)."""
    global _config_manager_instance
    _config_manager_instance = None


# Convenience functions for common config access
def get_default_scope() -> str:
    """Get the storage scope used when none is given."""
    return get_config_manager().get_str("default_scope", DEFAULT_SCOPE)


def get_duplicate_name_suffix() -> str:
    """Get the suffix appended to duplicated template names."""
    return get_config_manager().get_str("duplicate_name_suffix", DEFAULT_DUPLICATE_NAME_SUFFIX)


def get_temp_id_prefix() -> str:
    """Get the prefix for optimistic, not-yet-persisted ids."""
    return get_config_manager().get_str("temp_id_prefix", DEFAULT_TEMP_ID_PREFIX)


def get_log_level() -> str:
    """Get the log level name from config or default."""
    return get_config_manager().get_str("log_level", DEFAULT_LOG_LEVEL)

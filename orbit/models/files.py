"""
File models for the Orbit template engine.

Models representing the structure of JSON files in the data directory.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from orbit.constants import (
    DEFAULT_DUPLICATE_NAME_SUFFIX,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SCOPE,
    DEFAULT_TEMP_ID_PREFIX,
)


class TableFile(BaseModel):
    """Model for one <scope>/<table>.json file.

    Rows are kept in the scope's own column naming; the scope adapter maps
    them to canonical models.
    """

    table: str
    rows: List[Dict[str, Any]] = Field(default_factory=list)


class ConfigFile(BaseModel):
    """Model for config.json file.

    Engine settings and configuration.
    """

    schema_version: str = "0.1.0"

    default_scope: str = DEFAULT_SCOPE
    duplicate_name_suffix: str = DEFAULT_DUPLICATE_NAME_SUFFIX
    temp_id_prefix: str = DEFAULT_TEMP_ID_PREFIX

    # Logging settings
    log_level: str = DEFAULT_LOG_LEVEL

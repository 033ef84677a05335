"""
Storage manager for the Orbit template engine.

Handles loading and saving of the JSON table files in the data directory.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from orbit.exceptions import StorageError
from orbit.models.files import ConfigFile, TableFile

logger = logging.getLogger(__name__)


class StorageManager:
    """
    Manages persistence of table rows to JSON files under <data_dir>/<scope>/.

    Each table lives in its own file so a write touches only the table it
    changes. Handles atomic writes to prevent data corruption.
    """

    def __init__(self, data_dir: Optional[Path] = None, scope: str = "facility") -> None:
        """
        Initialize the StorageManager with a data directory path.

        Args:
            data_dir: Path to the data directory. Defaults to .orbit/ in current directory.
            scope: Storage scope subdirectory (facility or admin).
        """
        self.data_dir = data_dir if data_dir else Path(".orbit")
        self.scope = scope
        self.scope_dir = self.data_dir / scope
        self._ensure_dirs()

    def _ensure_dirs(self) -> None:
        """Create the data directory and scope subdirectory if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.scope_dir.mkdir(exist_ok=True)

    def _atomic_write(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Write data to a JSON file atomically to prevent corruption.

        Args:
            file_path: Path to the file to write.
            data: Dictionary data to write as JSON.

        Raises:
            StorageError: If writing to file fails.
        """
        temp_fd, temp_path = tempfile.mkstemp(
            dir=file_path.parent, prefix=".tmp_orbit_", suffix=".json"
        )

        try:
            with os.fdopen(temp_fd, "w") as temp_file:
                json.dump(data, temp_file, indent=2)
            os.replace(temp_path, file_path)
        except Exception as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            logger.error("Write failed for %s", file_path, extra={"error": str(e)})
            raise StorageError(f"Failed to write to {file_path}: {e}") from e

    def table_path(self, table: str) -> Path:
        return self.scope_dir / f"{table}.json"

    # =========================================================================
    # Tables
    # =========================================================================

    def load_table(self, table: str) -> TableFile:
        """Load <scope>/<table>.json and return as TableFile model."""
        file_path = self.table_path(table)
        if not file_path.exists():
            return TableFile(table=table)

        try:
            with open(file_path, "r") as f:
                data = json.load(f)
            return TableFile.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise StorageError(f"Failed to load {table}.json: {e}") from e

    def save_table(self, data: TableFile) -> None:
        """Save TableFile model to <scope>/<table>.json."""
        self._atomic_write(self.table_path(data.table), data.model_dump(mode="json"))

    def load_rows(self, table: str) -> List[Dict[str, Any]]:
        """Return the raw rows of a table."""
        return self.load_table(table).rows

    def save_rows(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """Replace the rows of a table."""
        self.save_table(TableFile(table=table, rows=rows))

    # =========================================================================
    # Config File
    # =========================================================================

    def load_config(self) -> ConfigFile:
        """Load config.json and return as ConfigFile model."""
        file_path = self.data_dir / "config.json"
        if not file_path.exists():
            return ConfigFile()

        try:
            with open(file_path, "r") as f:
                data = json.load(f)
            return ConfigFile.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise StorageError(f"Failed to load config.json: {e}") from e

    def save_config(self, data: ConfigFile) -> None:
        """Save ConfigFile model to config.json."""
        self._atomic_write(self.data_dir / "config.json", data.model_dump(mode="json"))

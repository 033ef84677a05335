"""Tests for structured JSON logging."""

import json
import logging
import os
from logging.handlers import RotatingFileHandler

from orbit.logging import setup_logging


def _file_handlers(logger):
    return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]


class TestSetupLogging:
    def test_writes_jsonl(self, temp_dir):
        logger = setup_logging(temp_dir)
        logging.getLogger("orbit.managers.executor").warning(
            "write failed", extra={"operation": "add_milestone_to_phase", "error": "disk full"}
        )
        for handler in logger.handlers:
            handler.flush()

        lines = (temp_dir / "orbit.log").read_text().splitlines()
        entry = json.loads(lines[-1])
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "orbit.managers.executor"
        assert entry["msg"] == "write failed"
        assert entry["operation"] == "add_milestone_to_phase"
        assert entry["error"] == "disk full"

    def test_idempotent_for_same_path(self, temp_dir):
        logger = setup_logging(temp_dir)
        setup_logging(temp_dir)
        assert len(_file_handlers(logger)) == 1

    def test_new_path_replaces_handler(self, temp_dir):
        first = temp_dir / "a"
        second = temp_dir / "b"
        first.mkdir()
        second.mkdir()
        setup_logging(first)
        logger = setup_logging(second)
        handlers = _file_handlers(logger)
        assert len(handlers) == 1
        assert handlers[0].baseFilename == os.path.abspath(str(second / "orbit.log"))

    def test_level(self, temp_dir):
        logger = setup_logging(temp_dir, level="debug")
        assert logger.level == logging.DEBUG

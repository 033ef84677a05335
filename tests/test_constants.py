"""
Tests for ConfigManager and the config accessors.
"""

import json

from orbit.constants import (
    DEFAULT_DUPLICATE_NAME_SUFFIX,
    ConfigManager,
    get_config_manager,
    get_duplicate_name_suffix,
    get_temp_id_prefix,
)


class TestConfigManager:
    """Test config.json loading with fallback to defaults."""

    def test_missing_file_uses_defaults(self, data_dir):
        config = ConfigManager(data_dir=data_dir)
        assert config.get_str("duplicate_name_suffix", DEFAULT_DUPLICATE_NAME_SUFFIX) == " (Copy)"
        assert config.reload() == {}

    def test_reads_values(self, temp_dir):
        (temp_dir / "config.json").write_text(json.dumps({"duplicate_name_suffix": " - copy"}))
        assert ConfigManager(data_dir=temp_dir).get_str("duplicate_name_suffix", "x") == " - copy"

    def test_invalid_json_falls_back(self, temp_dir):
        (temp_dir / "config.json").write_text("{not json")
        assert ConfigManager(data_dir=temp_dir).get("log_level", "INFO") == "INFO"

    def test_reload(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"log_level": "INFO"}))
        config = ConfigManager(data_dir=temp_dir)
        assert config.get("log_level") == "INFO"
        path.write_text(json.dumps({"log_level": "DEBUG"}))
        assert config.get("log_level") == "INFO"
        assert config.reload()["log_level"] == "DEBUG"


class TestAccessors:
    """Test the module-level accessors backed by the singleton."""

    def test_singleton_uses_data_dir(self, data_dir):
        data_dir.mkdir()
        (data_dir / "config.json").write_text(
            json.dumps({"duplicate_name_suffix": " copy", "temp_id_prefix": "tmp_"})
        )
        get_config_manager(reset=True, data_dir=data_dir)
        assert get_duplicate_name_suffix() == " copy"
        assert get_temp_id_prefix() == "tmp_"

    def test_reset_returns_new_instance(self, data_dir):
        first = get_config_manager()
        assert get_config_manager() is first
        assert get_config_manager(reset=True, data_dir=data_dir) is not first

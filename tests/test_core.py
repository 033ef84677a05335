"""
Tests for OrbitCore wiring and catalog seeding.
"""

import json

import pytest

from orbit.constants import MILESTONE_KIND, PHASE_KIND, REQUIRED_MILESTONE_NAMES, REQUIRED_PHASE_NAMES
from orbit.core import OrbitCore
from orbit.exceptions import ConfigurationError
from orbit.managers.events import AuditLogListener


class TestCoreInitialization:
    """Tests for OrbitCore initialization."""

    def test_creates_scope_directory(self, data_dir):
        core = OrbitCore(data_dir=data_dir)
        assert core.scope == "facility"
        assert (data_dir / "facility").is_dir()
        assert core.session.selected_template is None

    def test_scope_from_config(self, data_dir):
        data_dir.mkdir()
        (data_dir / "config.json").write_text(json.dumps({"default_scope": "admin"}))
        core = OrbitCore(data_dir=data_dir)
        assert core.scope == "admin"
        assert core.store.scope == "admin"

    def test_explicit_scope_wins(self, data_dir):
        data_dir.mkdir()
        (data_dir / "config.json").write_text(json.dumps({"default_scope": "admin"}))
        assert OrbitCore(data_dir=data_dir, scope="facility").scope == "facility"

    def test_invalid_scope(self, data_dir):
        with pytest.raises(ConfigurationError):
            OrbitCore(data_dir=data_dir, scope="hospital")

    def test_audit_listener(self, data_dir):
        core = OrbitCore(data_dir=data_dir)
        assert isinstance(core.audit_listener, AuditLogListener)
        quiet = OrbitCore(data_dir=data_dir, audit_enabled=False)
        assert not hasattr(quiet, "audit_listener")

    def test_log_file_created(self, data_dir):
        OrbitCore(data_dir=data_dir)
        assert (data_dir / "orbit.log").exists()


class TestSeedRequiredCatalog:
    """Tests for seeding the required phases and milestones."""

    def test_seeds_everything_once(self, data_dir):
        core = OrbitCore(data_dir=data_dir)
        created = core.seed_required_catalog()
        assert len(created) == len(REQUIRED_PHASE_NAMES) + len(REQUIRED_MILESTONE_NAMES)
        assert [p.internal_name for p in core.catalog.list_active(PHASE_KIND)] == list(REQUIRED_PHASE_NAMES)
        assert core.seed_required_catalog() == []

    def test_fills_gaps_only(self, data_dir):
        core = OrbitCore(data_dir=data_dir)
        core.catalog.create_milestone("Patient In")
        created = core.seed_required_catalog()
        names = [r.internal_name for r in created]
        assert "patient_in" not in names
        assert len(core.catalog.list_active(MILESTONE_KIND)) == len(REQUIRED_MILESTONE_NAMES)

    def test_seeded_template_has_required_structure(self, data_dir):
        core = OrbitCore(data_dir=data_dir)
        core.seed_required_catalog()
        core.session.create_template("Standard")
        assert core.session.has_required_structure
        assert len(core.session.required_item_ids) == 9

    def test_state_survives_new_core(self, data_dir):
        core = OrbitCore(data_dir=data_dir)
        core.seed_required_catalog()
        template = core.session.create_template("Standard").value

        reopened = OrbitCore(data_dir=data_dir)
        assert reopened.session.selected_template.id == template.id
        assert len(reopened.session.items) == 9

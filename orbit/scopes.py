"""
Storage scope adapters.

The global admin catalog and the per-facility catalog store the same
structure under different table and column names. Every row read from
storage passes through a ScopeAdapter so the validator, reducer and
managers only ever see the canonical shape:

    milestones(id, internal_name, display_name, pair_with_id, pair_position,
               display_order, is_active, deleted_at, deleted_by)
    phases(id, internal_name, display_name, color_key, display_order,
           parent_phase_id, is_active, deleted_at, deleted_by)
    templates(id, name, description, is_default, is_active, deleted_at,
              block_order, sub_phase_map)
    template_items(id, template_id, milestone_id, phase_id, display_order)
    assignments(id, template_id, is_active)
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from orbit.constants import ADMIN_SCOPE, FACILITY_SCOPE
from orbit.exceptions import ConfigurationError

MILESTONES = "milestones"
PHASES = "phases"
TEMPLATES = "templates"
TEMPLATE_ITEMS = "template_items"
ASSIGNMENTS = "assignments"


@dataclass(frozen=True)
class ScopeSchema:
    """Physical table names and renamed columns for one storage scope.

    columns maps canonical table -> {canonical column: scope column}.
    Columns that are not listed keep their canonical name.
    """

    name: str
    tables: Dict[str, str]
    columns: Dict[str, Dict[str, str]] = field(default_factory=dict)


FACILITY_SCHEMA = ScopeSchema(
    name=FACILITY_SCOPE,
    tables={
        MILESTONES: "facility_milestones",
        PHASES: "facility_phases",
        TEMPLATES: "milestone_templates",
        TEMPLATE_ITEMS: "milestone_template_items",
        ASSIGNMENTS: "procedure_types",
    },
    columns={
        MILESTONES: {"internal_name": "name"},
        PHASES: {"internal_name": "name"},
        TEMPLATE_ITEMS: {
            "milestone_id": "facility_milestone_id",
            "phase_id": "facility_phase_id",
        },
        ASSIGNMENTS: {"template_id": "milestone_template_id"},
    },
)

ADMIN_SCHEMA = ScopeSchema(
    name=ADMIN_SCOPE,
    tables={
        MILESTONES: "milestone_types",
        PHASES: "phase_templates",
        TEMPLATES: "milestone_template_types",
        TEMPLATE_ITEMS: "milestone_template_type_items",
        ASSIGNMENTS: "procedure_type_templates",
    },
    columns={
        MILESTONES: {"internal_name": "name"},
        PHASES: {
            "internal_name": "name",
            "parent_phase_id": "parent_phase_template_id",
        },
        TEMPLATE_ITEMS: {
            "template_id": "template_type_id",
            "milestone_id": "milestone_type_id",
            "phase_id": "phase_template_id",
        },
        ASSIGNMENTS: {"template_id": "milestone_template_type_id"},
    },
)

SCHEMAS = {
    FACILITY_SCOPE: FACILITY_SCHEMA,
    ADMIN_SCOPE: ADMIN_SCHEMA,
}


class ScopeAdapter:
    """Translates rows between a scope's column names and the canonical shape."""

    def __init__(self, schema: ScopeSchema) -> None:
        self.schema = schema
        self._reverse = {
            table: {scoped: canonical for canonical, scoped in mapping.items()}
            for table, mapping in schema.columns.items()
        }

    @classmethod
    def for_scope(cls, scope: str) -> "ScopeAdapter":
        try:
            return cls(SCHEMAS[scope])
        except KeyError:
            raise ConfigurationError(
                f"Unknown storage scope '{scope}'. Expected one of: {', '.join(SCHEMAS)}"
            ) from None

    @property
    def scope(self) -> str:
        return self.schema.name

    def table_name(self, table: str) -> str:
        """Physical table name for a canonical table."""
        return self.schema.tables[table]

    def to_canonical(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Rename a stored row's columns to canonical names."""
        mapping = self._reverse.get(table, {})
        return {mapping.get(key, key): value for key, value in row.items()}

    def to_scoped(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Rename a canonical row's columns to this scope's names."""
        mapping = self.schema.columns.get(table, {})
        return {mapping.get(key, key): value for key, value in row.items()}

    def column(self, table: str, canonical_column: str) -> str:
        """Scope-specific name for one canonical column."""
        return self.schema.columns.get(table, {}).get(canonical_column, canonical_column)

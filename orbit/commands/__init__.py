"""
Shared helpers for the Orbit command groups.

Commands accept either ids or human-friendly references: internal names for
catalog entries and template names for templates.
"""
from pathlib import Path
from typing import Optional

import click

from orbit.core import OrbitCore
from orbit.exceptions import NotFoundError
from orbit.models.results import ActionResult


def get_core(ctx: click.Context, template: Optional[str] = None) -> OrbitCore:
    """Build an OrbitCore from the root group options, optionally selecting a template."""
    obj = ctx.find_root().obj or {}
    core = OrbitCore(data_dir=obj.get("data_dir") or Path(".orbit"), scope=obj.get("scope"))
    if template is not None:
        core.session.select_template(resolve_template(core, template).id)
    return core


def resolve_catalog(core: OrbitCore, kind: str, ref: str):
    """Find a catalog entry by id or internal name (active entries win)."""
    records = core.catalog.list_all(kind)
    for record in records:
        if record.id == ref:
            return record
    matches = [r for r in records if r.internal_name == ref]
    active = [r for r in matches if r.is_active]
    if active:
        return active[0]
    if matches:
        return matches[0]
    raise NotFoundError(f"No {kind} matches '{ref}'.")


def resolve_template(core: OrbitCore, ref: str):
    """Find a template by id or name."""
    templates = core.templates.list_all()
    for template in templates:
        if template.id == ref:
            return template
    for template in templates:
        if template.name == ref and template.is_active:
            return template
    raise NotFoundError(f"No template matches '{ref}'.")


def require_ok(result: ActionResult):
    """Return the result value, or abort the command with the refusal reason."""
    if result.blocked:
        raise click.ClickException(result.reason or "Operation refused.")
    return result.value

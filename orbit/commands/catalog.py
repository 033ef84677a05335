"""
Catalog command group for the Orbit CLI.

Commands for listing, creating, archiving and restoring milestones and phases.
"""
import json
from typing import Optional

import click

from orbit.commands import get_core, require_ok, resolve_catalog
from orbit.constants import CATALOG_KINDS, MILESTONE_KIND, PHASE_KIND
from orbit.exceptions import ConflictError, NotFoundError, OrbitError, ValidationError

KIND = click.Choice(CATALOG_KINDS)


@click.group()
def catalog():
    """Manage the milestone and phase catalogs."""
    pass


def _describe(record) -> str:
    line = f"{record.display_order:>3}. {record.display_name} ({record.internal_name}) [{record.id}]"
    if not record.is_active:
        line += " (archived)"
    return line


@catalog.command(name="list")
@click.argument("kind", type=KIND)
@click.option("-a", "--archived", is_flag=True, help="Show archived entries instead of active ones.")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def list_entries(ctx, kind: str, archived: bool, json_output: bool):
    """List active (or archived) catalog entries of KIND."""
    try:
        core = get_core(ctx)
        records = core.catalog.list_archived(kind) if archived else core.catalog.list_active(kind)
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")

    if json_output:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return
    if not records:
        click.echo(f"No {'archived' if archived else 'active'} {kind}s.")
        return
    for record in records:
        click.echo(_describe(record))


@catalog.command(name="add")
@click.argument("kind", type=KIND)
@click.argument("display_name")
@click.option("-n", "--name", "internal_name", help="Internal name (derived from the display name if omitted).")
@click.option("-c", "--color", "color_key", help="Color key (phases only).")
@click.pass_context
def add(ctx, kind: str, display_name: str, internal_name: Optional[str], color_key: Optional[str]):
    """Add a milestone or phase to the catalog."""
    try:
        core = get_core(ctx)
        if kind == PHASE_KIND:
            extra = {"color_key": color_key} if color_key else {}
            record = require_ok(core.catalog.create_phase(display_name, internal_name=internal_name, **extra))
        else:
            record = require_ok(core.catalog.create_milestone(display_name, internal_name=internal_name))
        click.echo(f"{kind.capitalize()} '{record.display_name}' created ({record.id}).")
    except ConflictError as e:
        raise click.ClickException(f"Conflict: {e}")
    except ValidationError as e:
        raise click.ClickException(f"Validation Error: {e}")
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@catalog.command(name="rename")
@click.argument("kind", type=KIND)
@click.argument("ref")
@click.argument("display_name")
@click.pass_context
def rename(ctx, kind: str, ref: str, display_name: str):
    """Change the display name of a catalog entry (REF is an id or internal name)."""
    try:
        core = get_core(ctx)
        record = resolve_catalog(core, kind, ref)
        updated = require_ok(core.catalog.rename(kind, record.id, display_name))
        click.echo(f"{kind.capitalize()} '{record.internal_name}' renamed to '{updated.display_name}'.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@catalog.command(name="archive")
@click.argument("kind", type=KIND)
@click.argument("ref")
@click.option("--by", "deleted_by", help="Who archived the entry.")
@click.pass_context
def archive(ctx, kind: str, ref: str, deleted_by: Optional[str]):
    """Archive a catalog entry. Template placements are kept."""
    try:
        core = get_core(ctx)
        record = resolve_catalog(core, kind, ref)
        core.catalog.archive(kind, record.id, deleted_by=deleted_by)
        click.echo(f"{kind.capitalize()} '{record.internal_name}' archived.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@catalog.command(name="restore")
@click.argument("kind", type=KIND)
@click.argument("ref")
@click.pass_context
def restore(ctx, kind: str, ref: str):
    """Restore an archived catalog entry."""
    try:
        core = get_core(ctx)
        record = resolve_catalog(core, kind, ref)
        core.catalog.restore(kind, record.id)
        click.echo(f"{kind.capitalize()} '{record.internal_name}' restored.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except ConflictError as e:
        raise click.ClickException(f"Conflict: {e}")
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@catalog.command(name="pair")
@click.argument("first")
@click.argument("second")
@click.pass_context
def pair_milestones(ctx, first: str, second: str):
    """Pair two milestones; the earlier one becomes the start."""
    try:
        core = get_core(ctx)
        a = resolve_catalog(core, MILESTONE_KIND, first)
        b = resolve_catalog(core, MILESTONE_KIND, second)
        start, end = require_ok(core.catalog.link_pair(a.id, b.id))
        click.echo(f"Paired '{start.internal_name}' (start) with '{end.internal_name}' (end).")
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@catalog.command(name="unpair")
@click.argument("ref")
@click.pass_context
def unpair(ctx, ref: str):
    """Remove a milestone's pairing on both sides."""
    try:
        core = get_core(ctx)
        milestone = resolve_catalog(core, MILESTONE_KIND, ref)
        require_ok(core.catalog.unlink_pair(milestone.id))
        click.echo(f"Milestone '{milestone.internal_name}' unpaired.")
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@catalog.command(name="parent")
@click.argument("child")
@click.argument("parent", required=False)
@click.pass_context
def set_parent(ctx, child: str, parent: Optional[str]):
    """Nest phase CHILD under PARENT, or move it to top level when PARENT is omitted."""
    try:
        core = get_core(ctx)
        child_phase = resolve_catalog(core, PHASE_KIND, child)
        parent_id = resolve_catalog(core, PHASE_KIND, parent).id if parent else None
        require_ok(core.catalog.set_parent_phase(child_phase.id, parent_id))
        if parent_id:
            click.echo(f"Phase '{child_phase.internal_name}' nested under '{parent}'.")
        else:
            click.echo(f"Phase '{child_phase.internal_name}' moved to top level.")
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@catalog.command(name="check")
@click.pass_context
def check(ctx):
    """Report pairing and nesting problems in the catalog."""
    try:
        core = get_core(ctx)
        problems = core.catalog.check_pairs() + core.catalog.check_nesting()
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")

    if not problems:
        click.echo("Catalog is consistent.")
        return
    for problem in problems:
        click.echo(f"- {problem}")
    ctx.exit(1)

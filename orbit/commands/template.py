"""
Template command group for the Orbit CLI.

Commands for creating, duplicating, renaming, promoting and archiving templates.
"""
import json
from typing import Optional

import click

from orbit.commands import get_core, require_ok, resolve_template
from orbit.exceptions import NotFoundError, OrbitError


@click.group()
def template():
    """Manage milestone templates."""
    pass


@template.command(name="list")
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def list_templates(ctx, json_output: bool):
    """List active templates, default first."""
    try:
        core = get_core(ctx)
        templates = core.templates.list_active()
        counts = core.templates.assignment_counts()
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")

    if json_output:
        click.echo(json.dumps([t.model_dump(mode="json") for t in templates], indent=2))
        return
    if not templates:
        click.echo("No templates.")
        return
    for t in templates:
        marker = "*" if t.is_default else " "
        assigned = counts.get(t.id, 0)
        click.echo(f"{marker} {t.name} [{t.id}] ({assigned} assignment(s))")


@template.command(name="show")
@click.argument("ref", required=False)
@click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def show(ctx, ref: Optional[str], json_output: bool):
    """Show a template's phases and milestones (the default template if REF is omitted)."""
    try:
        core = get_core(ctx, template=ref)
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")

    session = core.session
    selected = session.selected_template
    if selected is None:
        raise click.ClickException("No templates.")

    if json_output:
        data = selected.model_dump(mode="json")
        data["items"] = [i.model_dump(mode="json") for i in session.items]
        data["attached_phase_ids"] = sorted(session.attached_phase_ids)
        data["has_required_structure"] = session.has_required_structure
        click.echo(json.dumps(data, indent=2))
        return

    milestones = {m.id: m for m in session.milestones}
    required = session.required_item_ids
    click.echo(f"Template: {selected.name}{' (default)' if selected.is_default else ''}")
    if selected.description:
        click.echo(f"Description: {selected.description}")
    for phase in session.assigned_phases:
        parent_id = selected.sub_phase_map.get(phase.id)
        indent = "    " if parent_id else "  "
        click.echo(f"\n{indent}{phase.display_name} ({phase.internal_name})")
        for item in session.items_for_phase(phase.id):
            milestone = milestones.get(item.milestone_id)
            label = milestone.display_name if milestone else f"<archived {item.milestone_id}>"
            lock = " [required]" if item.id in required else ""
            click.echo(f"{indent}  {item.display_order}. {label}{lock} [{item.id}]")
    unassigned = session.items_for_phase(None)
    if unassigned:
        click.echo("\n  Unassigned")
        for item in unassigned:
            milestone = milestones.get(item.milestone_id)
            label = milestone.display_name if milestone else f"<archived {item.milestone_id}>"
            click.echo(f"    {item.display_order}. {label} [{item.id}]")


@template.command(name="create")
@click.argument("name")
@click.option("-d", "--desc", help="Template description.")
@click.pass_context
def create(ctx, name: str, desc: Optional[str]):
    """Create a template seeded with the required phases and milestones."""
    try:
        core = get_core(ctx)
        created = require_ok(core.session.create_template(name, description=desc))
        click.echo(f"Template '{created.name}' created ({created.id}) with {len(core.session.items)} milestones.")
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@template.command(name="duplicate")
@click.argument("ref")
@click.pass_context
def duplicate(ctx, ref: str):
    """Copy a template with all of its milestones and structure."""
    try:
        core = get_core(ctx)
        source = resolve_template(core, ref)
        copy = require_ok(core.session.duplicate_template(source.id))
        click.echo(f"Template '{copy.name}' created ({copy.id}).")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@template.command(name="rename")
@click.argument("ref")
@click.argument("name")
@click.pass_context
def rename(ctx, ref: str, name: str):
    """Rename a template."""
    try:
        core = get_core(ctx)
        current = resolve_template(core, ref)
        renamed = require_ok(core.session.rename_template(name, template_id=current.id))
        click.echo(f"Template '{current.name}' renamed to '{renamed.name}'.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@template.command(name="default")
@click.argument("ref")
@click.pass_context
def set_default(ctx, ref: str):
    """Make a template the default for this scope."""
    try:
        core = get_core(ctx)
        target = resolve_template(core, ref)
        require_ok(core.session.set_default_template(target.id))
        click.echo(f"Template '{target.name}' is now the default.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@template.command(name="archive")
@click.argument("ref")
@click.pass_context
def archive(ctx, ref: str):
    """Archive a template. The default and assigned templates are refused."""
    try:
        core = get_core(ctx)
        target = resolve_template(core, ref)
        require_ok(core.session.archive_template(target.id))
        click.echo(f"Template '{target.name}' archived.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@template.command(name="assign")
@click.argument("ref")
@click.pass_context
def assign(ctx, ref: str):
    """Record an external assignment (e.g. a procedure type) to a template."""
    try:
        core = get_core(ctx)
        target = resolve_template(core, ref)
        assignment_id = core.store.add_assignment(target.id)
        click.echo(f"Assignment {assignment_id} recorded for '{target.name}'.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")

"""
Builder command group for the Orbit CLI.

Commands for placing milestones into phases of a template, reordering them and
nesting sub-phases. Phases and milestones are referenced by id or internal
name; the phase "unassigned" addresses the unassigned bucket.
"""
from typing import Optional, Tuple

import click

from orbit.commands import get_core, require_ok, resolve_catalog
from orbit.constants import MILESTONE_KIND, PHASE_KIND, UNASSIGNED_PHASE
from orbit.core import OrbitCore
from orbit.exceptions import NotFoundError, OrbitError

template_option = click.option(
    "-t", "--template", "template_ref", help="Template id or name (default template if omitted)."
)


@click.group()
def builder():
    """Edit the milestones and phases of a template."""
    pass


def _phase_id(core: OrbitCore, ref: str) -> Optional[str]:
    if ref == UNASSIGNED_PHASE:
        return None
    return resolve_catalog(core, PHASE_KIND, ref).id


def _find_item(core: OrbitCore, phase_ref: str, milestone_ref: str):
    phase_id = _phase_id(core, phase_ref)
    milestone = resolve_catalog(core, MILESTONE_KIND, milestone_ref)
    for item in core.session.items_for_phase(phase_id):
        if item.milestone_id == milestone.id:
            return item
    raise NotFoundError(f"Milestone '{milestone_ref}' is not in phase '{phase_ref}'.")


def _require_template(core: OrbitCore) -> None:
    if core.session.selected_template is None:
        raise click.ClickException("No template selected. Create one with 'orbit template create'.")


def _require_count(result) -> int:
    require_ok(result)
    return result.count or 0


@builder.command(name="add")
@click.argument("phase")
@click.argument("milestone")
@template_option
@click.pass_context
def add(ctx, phase: str, milestone: str, template_ref: Optional[str]):
    """Append MILESTONE to PHASE."""
    try:
        core = get_core(ctx, template=template_ref)
        _require_template(core)
        phase_id = _phase_id(core, phase)
        target = resolve_catalog(core, MILESTONE_KIND, milestone)
        item = require_ok(core.session.add_milestone_to_phase(phase_id, target.id))
        click.echo(f"Added '{target.internal_name}' to '{phase}' at position {item.display_order}.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@builder.command(name="remove")
@click.argument("phase")
@click.argument("milestone")
@template_option
@click.pass_context
def remove(ctx, phase: str, milestone: str, template_ref: Optional[str]):
    """Remove MILESTONE from PHASE. Required milestones are refused."""
    try:
        core = get_core(ctx, template=template_ref)
        _require_template(core)
        item = _find_item(core, phase, milestone)
        require_ok(core.session.remove_milestone(item.id))
        click.echo(f"Removed '{milestone}' from '{phase}'.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@builder.command(name="remove-phase")
@click.argument("phase")
@template_option
@click.pass_context
def remove_phase(ctx, phase: str, template_ref: Optional[str]):
    """Remove PHASE (or the unassigned bucket) and all of its milestones from the template."""
    try:
        core = get_core(ctx, template=template_ref)
        _require_template(core)
        phase_id = _phase_id(core, phase)
        result = _require_count(core.session.remove_phase_from_template(phase_id))
        click.echo(f"Removed phase '{phase}' ({result} milestone(s)).")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@builder.command(name="move")
@click.argument("phase")
@click.argument("milestone")
@click.argument("over")
@template_option
@click.pass_context
def move(ctx, phase: str, milestone: str, over: str, template_ref: Optional[str]):
    """Move MILESTONE onto the position of OVER inside PHASE."""
    try:
        core = get_core(ctx, template=template_ref)
        _require_template(core)
        active = _find_item(core, phase, milestone)
        target = _find_item(core, phase, over)
        written = _require_count(
            core.session.reorder_items_in_phase(_phase_id(core, phase), active.id, target.id)
        )
        click.echo(f"Reordered '{phase}' ({written} milestone(s) updated).")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@builder.command(name="nest")
@click.argument("child")
@click.argument("parent")
@template_option
@click.pass_context
def nest(ctx, child: str, parent: str, template_ref: Optional[str]):
    """Nest phase CHILD under phase PARENT in this template."""
    try:
        core = get_core(ctx, template=template_ref)
        _require_template(core)
        child_id = resolve_catalog(core, PHASE_KIND, child).id
        parent_id = resolve_catalog(core, PHASE_KIND, parent).id
        require_ok(core.session.nest_phase_as_sub_phase(child_id, parent_id))
        click.echo(f"Phase '{child}' nested under '{parent}'.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@builder.command(name="unnest")
@click.argument("child")
@template_option
@click.pass_context
def unnest(ctx, child: str, template_ref: Optional[str]):
    """Remove sub-phase CHILD, with its milestones, from the template."""
    try:
        core = get_core(ctx, template=template_ref)
        _require_template(core)
        child_id = resolve_catalog(core, PHASE_KIND, child).id
        require_ok(core.session.remove_sub_phase(child_id))
        click.echo(f"Sub-phase '{child}' removed.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")


@builder.command(name="block-order")
@click.argument("parent")
@click.argument("children", nargs=-1, required=True)
@template_option
@click.pass_context
def block_order(ctx, parent: str, children: Tuple[str, ...], template_ref: Optional[str]):
    """Set the order of CHILDREN (ids) rendered inside the PARENT phase block."""
    try:
        core = get_core(ctx, template=template_ref)
        _require_template(core)
        parent_id = resolve_catalog(core, PHASE_KIND, parent).id
        require_ok(core.session.update_block_order(parent_id, list(children)))
        click.echo(f"Block order for '{parent}' updated.")
    except NotFoundError as e:
        raise click.ClickException(str(e))
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")

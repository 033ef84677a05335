"""
Command-line interface for the Orbit template engine.

Uses OrbitCore and managers exclusively.
"""
from pathlib import Path

import click

from orbit.commands.builder import builder
from orbit.commands.catalog import catalog
from orbit.commands.init import init
from orbit.commands.template import template
from orbit.constants import VALID_SCOPES


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="ORBIT_DATA_DIR",
    default=".orbit",
    show_default=True,
    help="Data directory holding config.json and the table files.",
)
@click.option(
    "--scope",
    type=click.Choice(VALID_SCOPES),
    envvar="ORBIT_SCOPE",
    help="Storage scope (defaults to the configured scope).",
)
@click.pass_context
def cli(ctx, data_dir: Path, scope):
    """Configure surgical milestone templates: catalog, templates and builder."""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["scope"] = scope


cli.add_command(init)
cli.add_command(catalog)
cli.add_command(template)
cli.add_command(builder)


if __name__ == '__main__':
    cli()

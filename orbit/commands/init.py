"""
Init command for the Orbit CLI.

Creates the data directory, writes config.json and seeds the required
phases and milestones into the catalog.
"""
import click

from orbit.commands import get_core
from orbit.exceptions import OrbitError


@click.command()
@click.option("--no-seed", is_flag=True, help="Do not create the required phases and milestones.")
@click.pass_context
def init(ctx, no_seed: bool):
    """Initialize an Orbit data directory."""
    try:
        core = get_core(ctx)
        config_path = core.data_dir / "config.json"
        if not config_path.exists():
            config = core.storage.load_config()
            config.default_scope = core.scope
            core.storage.save_config(config)
            click.echo(f"Wrote {config_path}")

        if no_seed:
            return
        created = core.seed_required_catalog()
        click.echo(f"Seeded {len(created)} catalog entries in scope '{core.scope}'.")
    except OrbitError as e:
        raise click.ClickException(f"Error: {e}")

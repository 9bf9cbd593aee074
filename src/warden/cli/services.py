"""
Service template command.
"""

import click

from warden.config.app import resolve_config_path
from warden.services import get_service_template


@click.command("service:template")
@click.option(
    "--platform",
    "platform_name",
    type=click.Choice(["linux", "darwin", "win32"]),
    default=None,
    help="Target platform (default: current)",
)
@click.pass_context
def service_template(ctx: click.Context, platform_name: str | None) -> None:
    """Print systemd/launchd/task template."""
    config_path = resolve_config_path(ctx.ensure_object(dict).get("config_file"))
    click.echo(get_service_template(platform_name).render(config_path))

"""
Warden CLI entry point.
"""

import click

from .daemon import start, status, stop
from .monitor import heartbeat, run, watch
from .services import service_template
from .sync import init, pull, push, schema_update, validate

COMMAND_ALIASES = {
    "config-pull": "config:pull",
    "pull": "config:pull",
    "config-push": "config:push",
    "push": "config:push",
    "config-validate": "config:validate",
    "validate": "config:validate",
    "daemon-start": "daemon:start",
    "daemon-stop": "daemon:stop",
    "daemon-status": "daemon:status",
    "service-template": "service:template",
}


class AliasedGroup(click.Group):
    """Click group that also accepts the dash and short command spellings."""

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        return super().get_command(ctx, COMMAND_ALIASES.get(cmd_name, cmd_name))

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        _, cmd, args = super().resolve_command(ctx, args)
        return cmd.name if cmd else None, cmd, args


@click.group(cls=AliasedGroup, invoke_without_command=True)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    help="Path to warden config file (default: $WARDEN_CONFIG or ./warden.config.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug output")
@click.pass_context
def cli(ctx: click.Context, config_file: str | None, verbose: bool) -> None:
    """openclaw-warden - gateway heartbeat watchdog and config sync."""
    # Store options in context for subcommands; config is loaded lazily
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@click.command("help")
@click.pass_context
def help_command(ctx: click.Context) -> None:
    """Show this message."""
    parent = ctx.parent or ctx
    click.echo(parent.get_help())


# Register commands
cli.add_command(init)
cli.add_command(schema_update)
cli.add_command(validate)
cli.add_command(pull)
cli.add_command(push)
cli.add_command(watch)
cli.add_command(heartbeat)
cli.add_command(run)
cli.add_command(start)
cli.add_command(stop)
cli.add_command(status)
cli.add_command(service_template)
cli.add_command(help_command)


def main() -> None:
    cli(obj={})

"""
Daemon management commands.
"""

import click

from warden.cli.utils import get_config, get_optional_config
from warden.supervisor import ProcessSupervisor


@click.command("daemon:start")
@click.pass_context
def start(ctx: click.Context) -> None:
    """Run in background (pid/log in the temp dir)."""
    config = get_config(ctx)
    ProcessSupervisor(config_path=config.config_path).start()


@click.command("daemon:stop")
@click.pass_context
def stop(ctx: click.Context) -> None:
    """Stop background daemon."""
    get_optional_config(ctx)
    ProcessSupervisor().stop()


@click.command("daemon:status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Check daemon status."""
    get_optional_config(ctx)
    ProcessSupervisor().status()

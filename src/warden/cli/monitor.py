"""
Long-running commands: watch, heartbeat, run.
"""

import asyncio

import click

from warden.cli.utils import fail, get_config
from warden.errors import WardenError
from warden.runner import WardenRunner


def _run(ctx: click.Context, watch: bool, heartbeat: bool) -> None:
    config = get_config(ctx)
    runner = WardenRunner(config, watch=watch, heartbeat=heartbeat)
    try:
        asyncio.run(runner.run())
    except WardenError as e:
        fail(str(e))


@click.command("watch")
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Watch repo config and auto-apply on changes."""
    _run(ctx, watch=True, heartbeat=False)


@click.command("heartbeat")
@click.pass_context
def heartbeat(ctx: click.Context) -> None:
    """Run heartbeat loop."""
    _run(ctx, watch=False, heartbeat=True)


@click.command("run")
@click.pass_context
def run(ctx: click.Context) -> None:
    """Watch + heartbeat."""
    _run(ctx, watch=True, heartbeat=True)

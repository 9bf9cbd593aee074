"""
Config sync commands: init, pull, push, validate, schema:update.
"""

import asyncio
import logging

import click

from warden.cli.utils import fail, get_config
from warden.config.app import (
    ensure_default_config,
    generate_default_config,
    load_config,
    resolve_config_path,
)
from warden.errors import WardenError
from warden.sync.config import ConfigSyncEngine
from warden.sync.schema import SchemaUpdater
from warden.utils.logging import setup_file_logging

logger = logging.getLogger(__name__)


@click.command("init")
@click.option(
    "--global",
    "global_scope",
    is_flag=True,
    help="Create the config in the per-user config directory instead of the cwd",
)
@click.pass_context
def init(ctx: click.Context, global_scope: bool) -> None:
    """Seed repo config + init git."""
    obj = ctx.ensure_object(dict)
    setup_file_logging(verbose=obj.get("verbose", False))

    config_file = obj.get("config_file")
    if config_file:
        config_path = resolve_config_path(config_file)
        created = not config_path.exists()
        if created:
            generate_default_config(config_path)
    else:
        config_path, created = ensure_default_config(global_scope=global_scope)
    if created:
        logger.info(f"Created default config: {config_path}")

    try:
        config = load_config(config_path)
        setup_file_logging(config.log_file_path, config.logging.level, verbose=obj.get("verbose", False))
        ConfigSyncEngine(config).init()
    except (WardenError, OSError) as e:
        fail(str(e))


@click.command("config:pull")
@click.pass_context
def pull(ctx: click.Context) -> None:
    """Copy the live config into the repo and commit it (alias: pull)."""
    config = get_config(ctx)
    try:
        ConfigSyncEngine(config).pull()
    except (WardenError, OSError) as e:
        fail(str(e))


@click.command("config:push")
@click.pass_context
def push(ctx: click.Context) -> None:
    """Validate the repo config and atomically apply it (alias: push)."""
    config = get_config(ctx)
    try:
        ConfigSyncEngine(config).push()
    except (WardenError, OSError) as e:
        fail(str(e))


@click.command("config:validate")
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate the repo config against the schema (alias: validate)."""
    config = get_config(ctx)
    try:
        ConfigSyncEngine(config).validate()
    except (WardenError, OSError) as e:
        fail(str(e))
    logger.info("Config is valid.")


@click.command("schema:update")
@click.pass_context
def schema_update(ctx: click.Context) -> None:
    """Fetch schema from OpenClaw source."""
    config = get_config(ctx)
    try:
        asyncio.run(SchemaUpdater(config).update())
    except (WardenError, OSError) as e:
        fail(str(e))

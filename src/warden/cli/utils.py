"""
Shared utilities for CLI commands.
"""

import logging
import sys
from typing import NoReturn

import click

from warden.config.app import WardenConfig, load_config
from warden.errors import WardenError
from warden.utils.logging import setup_file_logging

logger = logging.getLogger(__name__)


def get_config(ctx: click.Context) -> WardenConfig:
    """
    Load the warden config once per invocation and configure logging from it.

    Exits with status 1 when the config is missing or invalid.
    """
    obj = ctx.ensure_object(dict)
    config = obj.get("config")
    if config is not None:
        return config

    verbose = obj.get("verbose", False)
    try:
        config = load_config(obj.get("config_file"))
    except WardenError as e:
        setup_file_logging(verbose=verbose)
        fail(str(e))

    setup_file_logging(config.log_file_path, config.logging.level, verbose=verbose)
    obj["config"] = config
    return config


def get_optional_config(ctx: click.Context) -> WardenConfig | None:
    """Like get_config, but a missing or broken config only means console logging."""
    obj = ctx.ensure_object(dict)
    if obj.get("config") is not None:
        return obj["config"]
    try:
        config = load_config(obj.get("config_file"))
    except WardenError as e:
        setup_file_logging(verbose=obj.get("verbose", False))
        logger.debug(f"Continuing without config: {e}")
        return None
    setup_file_logging(config.log_file_path, config.logging.level, verbose=obj.get("verbose", False))
    obj["config"] = config
    return config


def fail(message: str) -> NoReturn:
    """Log an error and exit non-zero."""
    logger.error(message)
    sys.exit(1)

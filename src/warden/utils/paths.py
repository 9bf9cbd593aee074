"""Filesystem locations used by warden."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

APP_NAME = "openclaw-warden"
DEFAULT_CONFIG_NAME = "warden.config.json"


def get_state_dir() -> Path:
    """Get the warden state directory, respecting WARDEN_STATE_DIR env var.

    Returns:
        Path holding the daemon pid file, daemon log and health cache
        (<tmp>/openclaw-warden by default)
    """
    state_dir = os.environ.get("WARDEN_STATE_DIR")
    if state_dir:
        return Path(state_dir)
    return Path(tempfile.gettempdir()) / APP_NAME


def get_pid_file() -> Path:
    return get_state_dir() / "warden.pid"


def get_daemon_log_file() -> Path:
    return get_state_dir() / "warden.log"


def get_health_cache_file() -> Path:
    return get_state_dir() / "health.json"


def get_global_config_dir() -> Path:
    """Per-user config directory for the current platform."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        base = Path(app_data) if app_data else Path.home() / "AppData" / "Roaming"
        return base / APP_NAME
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / APP_NAME


def expand_home(value: str) -> str:
    """Expand a leading ``~/`` to the home directory. Other forms are left alone."""
    if value.startswith("~/"):
        return str(Path.home() / value[2:])
    return value


def resolve_path(value: str | Path, base_dir: Path | None = None) -> Path:
    """Resolve a config path against base_dir (cwd when None)."""
    expanded = Path(expand_home(str(value)))
    if expanded.is_absolute():
        return expanded
    return ((base_dir or Path.cwd()) / expanded).resolve()

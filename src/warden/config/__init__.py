"""
Configuration package for warden.

Module structure:
- app.py: WardenConfig, path/schema/git sections and the loader
- heartbeat.py: HeartbeatConfig, AgentProbeConfig
- logging.py: LoggingSettings
"""

from warden.config.app import (
    GitConfig,
    PathsConfig,
    SchemaSourceConfig,
    WardenConfig,
    ensure_default_config,
    generate_default_config,
    load_config,
    resolve_config_path,
)
from warden.config.heartbeat import AgentProbeConfig, HeartbeatConfig
from warden.config.logging import LoggingSettings

__all__ = [
    "AgentProbeConfig",
    "GitConfig",
    "HeartbeatConfig",
    "LoggingSettings",
    "PathsConfig",
    "SchemaSourceConfig",
    "WardenConfig",
    "ensure_default_config",
    "generate_default_config",
    "load_config",
    "resolve_config_path",
]

"""
Configuration management for warden.

Provides JSON/YAML-based configuration with pydantic validation. The config
file is located through --config > WARDEN_CONFIG > ./warden.config.json >
the per-user config directory. Relative paths inside it resolve against the
directory holding the config file.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from warden.config.heartbeat import HeartbeatConfig
from warden.config.logging import LoggingSettings
from warden.errors import ConfigNotFoundError, MalformedConfigError
from warden.utils.paths import (
    DEFAULT_CONFIG_NAME,
    get_daemon_log_file,
    get_global_config_dir,
    resolve_path,
)

_SECTION_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class PathsConfig(BaseModel):
    """Managed copy, live location and schema file."""

    model_config = _SECTION_CONFIG

    repo_config: str = Field(
        default="./config/openclaw.json",
        description="Managed, git-tracked copy of the gateway config",
    )
    live_config: str = Field(
        default="~/.openclaw/openclaw.json",
        description="Config file the gateway actually reads",
    )
    schema_file: str = Field(
        default="./state/schema.json",
        description="JSON Schema used to validate the managed copy",
    )


class SchemaSourceConfig(BaseModel):
    """How schema:update obtains the JSON Schema."""

    model_config = _SECTION_CONFIG

    source: Literal["git", "command"] = Field(
        default="git",
        description="'git' runs export_command in a checkout of repo_url; 'command' runs command",
    )
    repo_url: str | None = Field(
        default="https://github.com/openclaw/openclaw.git",
        description="Repository holding the schema source (source=git)",
    )
    ref: str = Field(default="main", description="Ref checked out before export")
    checkout_dir: str = Field(
        default="./state/openclaw",
        description="Where the schema source is cloned",
    )
    use_local_deps: bool = Field(
        default=True,
        description="Reuse warden's own node_modules instead of installing in the checkout",
    )
    export_command: str | None = Field(
        default=(
            "node --import tsx -e \"import { buildConfigSchema } from './src/config/schema.ts'; "
            'console.log(JSON.stringify(buildConfigSchema(), null, 2));"'
        ),
        description="Command printing the schema JSON inside the checkout (source=git)",
    )
    install_command: str | None = Field(
        default=None,
        description="Dependency install command run when the checkout lockfile changed",
    )
    node_path: str | None = Field(
        default=None,
        description="node_modules directory exported as NODE_PATH when use_local_deps is set",
    )
    command: str | None = Field(
        default=None,
        description="Command printing the schema JSON (source=command)",
    )
    cwd: str | None = Field(default=None, description="Working directory for command")


class GitConfig(BaseModel):
    """Version control of the managed copy."""

    model_config = _SECTION_CONFIG

    enabled: bool = Field(default=True, description="Commit managed copy changes")
    auto_init: bool = Field(
        default=True,
        description="Run git init in the managed copy's directory when it is not a repo",
    )


class WardenConfig(BaseModel):
    """
    Main configuration for warden.

    Loaded once per process and never mutated afterwards.
    """

    model_config = _SECTION_CONFIG

    paths: PathsConfig = Field(default_factory=PathsConfig)
    schema_source: SchemaSourceConfig = Field(
        default_factory=SchemaSourceConfig,
        alias="schema",
    )
    git: GitConfig = Field(default_factory=GitConfig)
    heartbeat: HeartbeatConfig = Field(default_factory=HeartbeatConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    config_path: Path | None = Field(
        default=None,
        exclude=True,
        description="Absolute path of the file this config was loaded from",
    )

    @property
    def config_dir(self) -> Path:
        if self.config_path is not None:
            return self.config_path.parent
        return Path.cwd()

    def resolve(self, value: str | Path) -> Path:
        """Resolve a path from the config file against the config's directory."""
        return resolve_path(value, self.config_dir)

    @property
    def repo_config_path(self) -> Path:
        return self.resolve(self.paths.repo_config)

    @property
    def live_config_path(self) -> Path:
        return self.resolve(self.paths.live_config)

    @property
    def schema_file_path(self) -> Path:
        return self.resolve(self.paths.schema_file)

    @property
    def log_file_path(self) -> Path:
        if self.logging.file:
            return self.resolve(self.logging.file)
        return get_daemon_log_file()


def resolve_config_path(config_file: str | Path | None = None) -> Path:
    """
    Locate the warden config file.

    Args:
        config_file: Explicit path (e.g. from --config); wins over everything else

    Returns:
        Path to the config file (may not exist yet)
    """
    if config_file:
        return resolve_path(config_file)
    env_path = os.environ.get("WARDEN_CONFIG")
    if env_path:
        return resolve_path(env_path)
    local_path = Path.cwd() / DEFAULT_CONFIG_NAME
    if local_path.exists():
        return local_path
    return get_global_config_dir() / DEFAULT_CONFIG_NAME


def load_config_file(config_path: Path) -> dict[str, Any]:
    """
    Load a YAML or JSON configuration file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary with the parsed content

    Raises:
        MalformedConfigError: If the content is invalid or not a mapping
    """
    file_ext = config_path.suffix.lower()
    if file_ext not in [".yaml", ".yml", ".json"]:
        raise MalformedConfigError(
            f"Config file must have .yaml, .yml, or .json extension, got: {file_ext}\n"
            f"File: {config_path}"
        )

    try:
        content = config_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise MalformedConfigError(f"Config file is not UTF-8 text: {config_path}: {e}") from e

    try:
        if file_ext == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise MalformedConfigError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise MalformedConfigError(f"Invalid JSON in config file: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedConfigError(f"Config must be an object: {config_path}")
    return data


def load_config(config_file: str | Path | None = None) -> WardenConfig:
    """
    Load and validate the warden configuration.

    Args:
        config_file: Explicit config path; see resolve_config_path for the fallbacks

    Returns:
        Validated WardenConfig with config_path set

    Raises:
        ConfigNotFoundError: If the config file does not exist
        MalformedConfigError: If the file cannot be parsed or fails validation
    """
    config_path = resolve_config_path(config_file)
    if not config_path.exists():
        raise ConfigNotFoundError(f"Config not found: {config_path}")

    config_dict = load_config_file(config_path)
    config_dict["configPath"] = config_path.resolve()

    try:
        return WardenConfig.model_validate(config_dict)
    except ValidationError as e:
        raise MalformedConfigError(
            f"Configuration validation failed: {e}\n"
            f"Please check your configuration file at {config_path}"
        ) from e


def dump_config(config: WardenConfig) -> dict[str, Any]:
    """Serialize a config the way it is written to disk (camelCase keys)."""
    return config.model_dump(mode="json", by_alias=True, exclude_none=True)


def generate_default_config(config_path: Path) -> None:
    """
    Write a default configuration file from the pydantic model defaults.

    Args:
        config_path: Where to create the config file (.json, .yaml or .yml)
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)
    default_config = dump_config(WardenConfig())

    with open(config_path, "w", encoding="utf-8") as f:
        if config_path.suffix.lower() in (".yaml", ".yml"):
            yaml.safe_dump(default_config, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(default_config, f, indent=2)
            f.write("\n")


def ensure_default_config(global_scope: bool = False) -> tuple[Path, bool]:
    """
    Create the default config file for `init` if none exists.

    Args:
        global_scope: Use the per-user config directory instead of the cwd

    Returns:
        Tuple of (config path, whether it was created)
    """
    if global_scope:
        config_path = get_global_config_dir() / DEFAULT_CONFIG_NAME
    else:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME
    if config_path.exists():
        return config_path, False
    generate_default_config(config_path)
    return config_path, True

"""Pytest configuration and shared fixtures for warden tests."""

import json
import logging
import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from warden.config.app import WardenConfig

SAMPLE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "port": {"type": "integer"},
        "name": {"type": "string"},
    },
    "required": ["port"],
}


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def isolated_env(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep pid files, logs, the health cache and git identity inside the test."""
    monkeypatch.setenv("WARDEN_STATE_DIR", str(temp_dir / "state-dir"))
    monkeypatch.delenv("WARDEN_CONFIG", raising=False)
    monkeypatch.delenv("WARDEN_DAEMON", raising=False)
    monkeypatch.delenv("WARDEN_COMMAND", raising=False)
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Warden Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "warden@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Warden Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "warden@example.com")


@pytest.fixture(autouse=True)
def restore_root_logging() -> Iterator[None]:
    """setup_file_logging replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def make_config(temp_dir: Path) -> Callable[..., WardenConfig]:
    """Build a WardenConfig whose files all live under temp_dir."""

    def _make(**overrides: Any) -> WardenConfig:
        data: dict[str, Any] = {
            "paths": {
                "repoConfig": "./repo/openclaw.json",
                "liveConfig": "./live/openclaw.json",
                "schemaFile": "./state/schema.json",
            },
            "git": {"enabled": False},
            "logging": {"file": str(temp_dir / "warden.log")},
            "configPath": temp_dir.resolve() / "warden.config.json",
        }
        data.update(overrides)
        return WardenConfig.model_validate(data)

    return _make


@pytest.fixture
def write_schema() -> Callable[[WardenConfig], Path]:
    def _write(config: WardenConfig, schema: dict[str, Any] | None = None) -> Path:
        path = config.schema_file_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(schema or SAMPLE_SCHEMA), encoding="utf-8")
        return path

    return _write

"""
Config synchronization between the managed copy and the live location.

Operations:
- pull: live -> managed copy, then commit
- push: validate managed copy, atomically replace live, then commit
- validate: JSON parse + JSON Schema validation with every error collected
- watch: poll the managed copy and push once per burst of edits
- init: seed the managed copy and commit it
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import tempfile
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema.exceptions import SchemaError

from warden.config.app import WardenConfig
from warden.errors import (
    ConfigNotFoundError,
    LiveConfigMissingError,
    MalformedConfigError,
    SchemaNotFoundError,
    SchemaValidationError,
)
from warden.sync.git import GitOperationResult, GitRepo

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.4
DEFAULT_POLL_INTERVAL = 0.1


@dataclass
class SyncResult:
    """Outcome of a pull, push or init."""

    source: Path | None
    destination: Path
    commit: GitOperationResult | None = None


def now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def atomic_copy(src: Path, dest: Path) -> None:
    """
    Replace dest with the content of src without ever exposing a partial file.

    The copy is written to a temp file in dest's directory, fsynced and then
    renamed over dest, so a reader sees either the old or the new content.
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=str(dest.parent), prefix=f".{dest.name}.tmp-")
    try:
        with os.fdopen(fd, "wb") as out, open(src, "rb") as inp:
            shutil.copyfileobj(inp, out)
            out.flush()
            os.fsync(out.fileno())
        if dest.exists():
            shutil.copymode(dest, temp_path)
        os.replace(temp_path, dest)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def _format_error_path(error: jsonschema.ValidationError) -> str:
    return "/" + "/".join(str(part) for part in error.absolute_path)


class ConfigSyncEngine:
    """
    Keeps the managed config copy and the live config in sync.

    Git failures are logged and never abort a sync: the files on disk are
    already correct before the commit step runs.
    """

    def __init__(
        self,
        config: WardenConfig,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.config = config
        self.debounce_seconds = debounce_seconds
        self.poll_interval = poll_interval

        # Watch state
        self._running = False
        self._push_task: asyncio.Task[None] | None = None
        self._last_change_time: float = 0
        self.push_count = 0

    @property
    def repo_config_path(self) -> Path:
        return self.config.repo_config_path

    @property
    def live_config_path(self) -> Path:
        return self.config.live_config_path

    # ------------------------------------------------------------------
    # Version control
    # ------------------------------------------------------------------

    def commit(self, label: str) -> GitOperationResult | None:
        """Commit the managed copy if git is enabled and the file changed."""
        if not self.config.git.enabled:
            return None
        repo = GitRepo(self.repo_config_path.parent)
        if not repo.ensure_repo(self.config.git.auto_init):
            return None
        return repo.commit_file_if_changed(self.repo_config_path, f"{label} {now_iso()}")

    # ------------------------------------------------------------------
    # One-shot operations
    # ------------------------------------------------------------------

    def pull(self) -> SyncResult:
        """
        Copy the live config onto the managed copy and commit it.

        Raises:
            LiveConfigMissingError: If the live config does not exist
        """
        live = self.live_config_path
        repo_config = self.repo_config_path
        if not live.exists():
            raise LiveConfigMissingError(f"Live config not found: {live}")

        repo_config.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(live, repo_config)
        logger.info(f"Pulled live config -> repo: {repo_config}")

        return SyncResult(source=live, destination=repo_config, commit=self.commit("sync pull"))

    def push(self) -> SyncResult:
        """
        Validate the managed copy, atomically replace the live config, commit.

        Raises:
            ConfigNotFoundError, MalformedConfigError, SchemaNotFoundError,
            SchemaValidationError: validation failed; live config untouched
        """
        self.validate()
        atomic_copy(self.repo_config_path, self.live_config_path)
        logger.info(f"Pushed repo config -> live: {self.live_config_path}")

        return SyncResult(
            source=self.repo_config_path,
            destination=self.live_config_path,
            commit=self.commit("sync push"),
        )

    def init(self) -> SyncResult:
        """Seed the managed copy from the live config (or {}) and commit it."""
        repo_config = self.repo_config_path
        live = self.live_config_path
        repo_config.parent.mkdir(parents=True, exist_ok=True)

        source: Path | None = None
        if not repo_config.exists():
            if live.exists():
                shutil.copyfile(live, repo_config)
                source = live
                logger.info(f"Seeded repo config from live: {repo_config}")
            else:
                repo_config.write_text("{}", encoding="utf-8")
                logger.info(f"Created empty repo config: {repo_config}")
        else:
            logger.info(f"Repo config already exists: {repo_config}")

        return SyncResult(source=source, destination=repo_config, commit=self.commit("init"))

    def load_schema(self) -> dict[str, Any]:
        schema_path = self.config.schema_file_path
        if not schema_path.exists():
            raise SchemaNotFoundError(
                f"Schema file not found: {schema_path} (run `warden schema:update`)"
            )
        try:
            schema = json.loads(schema_path.read_text(encoding="utf-8"))
        except UnicodeDecodeError as e:
            raise MalformedConfigError(f"Schema file is not UTF-8 text {schema_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise MalformedConfigError(f"Invalid JSON in schema file {schema_path}: {e}") from e
        if not isinstance(schema, (dict, bool)):
            raise MalformedConfigError(f"Schema must be an object: {schema_path}")
        return schema

    def validate(self) -> None:
        """
        Validate the managed copy against the schema.

        Malformed JSON is reported before the schema is even loaded. Schema
        violations are all collected into one SchemaValidationError.
        """
        repo_config = self.repo_config_path
        if not repo_config.exists():
            raise ConfigNotFoundError(f"Repo config not found: {repo_config}")

        try:
            data = json.loads(repo_config.read_text(encoding="utf-8"))
        except UnicodeDecodeError as e:
            raise MalformedConfigError(f"Invalid JSON: not UTF-8 text ({e})") from e
        except json.JSONDecodeError as e:
            raise MalformedConfigError(f"Invalid JSON: {e}") from e

        schema = self.load_schema()
        validator_cls = jsonschema.validators.validator_for(schema)
        try:
            validator_cls.check_schema(schema)
        except SchemaError as e:
            raise MalformedConfigError(f"Invalid schema: {e.message}") from e

        validator = validator_cls(schema, format_checker=jsonschema.FormatChecker())
        errors = sorted(validator.iter_errors(data), key=_format_error_path)
        if errors:
            raise SchemaValidationError(
                [f"- {_format_error_path(e)} {e.message}" for e in errors]
            )

    # ------------------------------------------------------------------
    # Watch mode
    # ------------------------------------------------------------------

    def _file_signature(self) -> tuple[int, int] | None:
        try:
            stat = self.repo_config_path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    async def watch(self) -> None:
        """
        Watch the managed copy and push after each burst of edits.

        Changes are detected by polling mtime and size. Each change restarts
        the debounce window, so an editor's multiple writes end in a single
        push and commit. Push failures are logged and watching continues.

        Raises:
            ConfigNotFoundError: If the managed copy does not exist at start
        """
        if not self.repo_config_path.exists():
            raise ConfigNotFoundError(f"Repo config not found: {self.repo_config_path}")

        logger.info(f"Watching {self.repo_config_path} for changes...")
        self._running = True
        try:
            last_signature = self._file_signature()
        except OSError as e:
            logger.warning(f"Cannot stat {self.repo_config_path}: {e}")
            last_signature = None
        try:
            while self._running:
                await asyncio.sleep(self.poll_interval)
                try:
                    signature = self._file_signature()
                except OSError as e:
                    # Transient stat failures (EACCES, ESTALE) skip this poll
                    logger.warning(f"Cannot stat {self.repo_config_path}: {e}")
                    continue
                if signature != last_signature:
                    last_signature = signature
                    if signature is not None:
                        self.trigger_push()
        finally:
            self._running = False
            await self._drain_push_task()

    def stop(self) -> None:
        """Stop watching after the current poll."""
        self._running = False

    def trigger_push(self) -> None:
        """Trigger a debounced push."""
        self._last_change_time = time.monotonic()

        if self._push_task is None or self._push_task.done():
            self._push_task = asyncio.create_task(self._process_push_queue())

    async def _drain_push_task(self) -> None:
        if self._push_task and not self._push_task.done():
            try:
                await self._push_task
            except asyncio.CancelledError:
                pass
        self._push_task = None

    async def _process_push_queue(self) -> None:
        """Push once the debounce window has passed without new changes."""
        while True:
            elapsed = time.monotonic() - self._last_change_time
            if elapsed < self.debounce_seconds:
                await asyncio.sleep(max(0.01, self.debounce_seconds - elapsed))
                continue

            change_seen = self._last_change_time
            try:
                await asyncio.to_thread(self.push)
                self.push_count += 1
                logger.info("Applied config after change.")
            except Exception as e:
                logger.error(f"Error applying config after change: {e}")

            # A change that landed during the push needs its own push
            if self._last_change_time == change_seen:
                return

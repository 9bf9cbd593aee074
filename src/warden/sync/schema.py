"""
Schema acquisition for `schema:update`.

Runs a command that prints the gateway's config JSON Schema and stores it at
paths.schemaFile. With source=git the command runs inside a checkout of the
gateway source, which is cloned on first use and fetched/checked out on
every update.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shlex
from pathlib import Path
from typing import Any

from warden.commands import CommandRunner
from warden.config.app import WardenConfig
from warden.errors import SchemaUpdateError
from warden.utils.json_helpers import extract_json_object

logger = logging.getLogger(__name__)

LOCKFILES = ("pnpm-lock.yaml", "package-lock.json", "yarn.lock")
LOCKHASH_STAMP = ".warden-lockhash"


def extract_schema(raw: str) -> Any:
    """
    Pull the schema out of a command's stdout.

    The export command may print the schema itself or wrap it as
    {"schema": ...}, {"payload": {"schema": ...}} or {"result": {"schema": ...}}.
    """
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError:
        data = extract_json_object(raw)
    if isinstance(data, dict):
        if data.get("schema"):
            return data["schema"]
        for key in ("payload", "result"):
            inner = data.get(key)
            if isinstance(inner, dict) and inner.get("schema"):
                return inner["schema"]
    return data


def file_sha256(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


class SchemaUpdater:
    """Fetches the JSON Schema used to validate the managed config."""

    def __init__(self, config: WardenConfig, runner: CommandRunner | None = None):
        self.config = config
        self.runner = runner or CommandRunner(config)

    async def _run(self, command: str, cwd: Path | None = None, env: dict[str, str] | None = None):
        result = await self.runner.run_shell(command, cwd=cwd, env=env)
        if not result.ok:
            raise SchemaUpdateError(f"{command} failed: {result.stderr.strip()}")
        return result

    async def ensure_checkout(self) -> Path:
        """Clone (first time), fetch and check out the schema source."""
        schema_cfg = self.config.schema_source
        checkout_dir = self.config.resolve(schema_cfg.checkout_dir)
        checkout_dir.parent.mkdir(parents=True, exist_ok=True)

        if not checkout_dir.exists():
            clone_cmd = (
                f"git clone --filter=blob:none {shlex.quote(schema_cfg.repo_url or '')} "
                f"{shlex.quote(str(checkout_dir))}"
            )
            logger.info(f"Cloning schema source: {clone_cmd}")
            await self._run(clone_cmd)

        await self._run("git fetch --all --prune", cwd=checkout_dir)
        await self._run(f"git checkout {shlex.quote(schema_cfg.ref)}", cwd=checkout_dir)
        return checkout_dir

    async def maybe_install_deps(self, checkout_dir: Path) -> bool:
        """
        Run schema.installCommand when dependencies are missing or stale.

        Staleness is tracked with a sha256 stamp of the checkout's lockfile.

        Returns:
            True if the install command ran
        """
        install_command = self.config.schema_source.install_command
        if not install_command:
            return False

        lockfile = next(
            (checkout_dir / name for name in LOCKFILES if (checkout_dir / name).exists()),
            None,
        )
        stamp = checkout_dir / LOCKHASH_STAMP

        needs_install = not (checkout_dir / "node_modules").exists()
        if not needs_install and lockfile is not None:
            try:
                saved = stamp.read_text(encoding="utf-8").strip() if stamp.exists() else ""
                needs_install = not saved or saved != file_sha256(lockfile)
            except OSError as e:
                logger.warning(f"Lockfile hash check failed: {e}")
                needs_install = True

        if not needs_install:
            return False

        logger.info(f"Installing schema source deps: {install_command}")
        await self._run(install_command, cwd=checkout_dir)

        if lockfile is not None:
            try:
                stamp.write_text(f"{file_sha256(lockfile)}\n", encoding="utf-8")
            except OSError as e:
                logger.warning(f"Failed to write lockfile hash: {e}")
        return True

    def _local_node_path_env(self) -> dict[str, str]:
        node_path_setting = self.config.schema_source.node_path
        local_node_path = self.config.config_dir / "node_modules"
        if node_path_setting:
            candidate = self.config.resolve(node_path_setting)
            if candidate.exists():
                local_node_path = candidate
        parts = [str(local_node_path), os.environ.get("NODE_PATH", "")]
        env = dict(os.environ)
        env["NODE_PATH"] = os.pathsep.join(part for part in parts if part)
        return env

    async def update(self) -> Path:
        """
        Regenerate the schema file.

        Returns:
            Path of the written schema file

        Raises:
            SchemaUpdateError: If a required setting is missing, a command
                fails or the output holds no JSON object
        """
        schema_cfg = self.config.schema_source
        schema_path = self.config.schema_file_path
        schema_path.parent.mkdir(parents=True, exist_ok=True)

        env: dict[str, str] | None = None
        if schema_cfg.source == "git":
            if not schema_cfg.repo_url:
                raise SchemaUpdateError("schema.repoUrl is required when schema.source=git")
            if not schema_cfg.export_command:
                raise SchemaUpdateError("schema.exportCommand is required when schema.source=git")
            cwd = await self.ensure_checkout()
            if schema_cfg.use_local_deps:
                env = self._local_node_path_env()
            else:
                await self.maybe_install_deps(cwd)
            command = schema_cfg.export_command
        else:
            if not schema_cfg.command:
                raise SchemaUpdateError("schema.command is required when schema.source=command")
            cwd = self.config.resolve(schema_cfg.cwd) if schema_cfg.cwd else Path.cwd()
            command = schema_cfg.command

        logger.info(f"Running schema command: {command}")
        result = await self._run(command, cwd=cwd, env=env)
        schema = extract_schema(result.stdout.strip())
        if not isinstance(schema, dict):
            raise SchemaUpdateError("Failed to parse schema JSON from command output")

        schema_path.write_text(json.dumps(schema, indent=2), encoding="utf-8")
        logger.info(f"Schema updated: {schema_path}")
        return schema_path

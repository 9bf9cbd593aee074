"""Templated shell command execution."""

from __future__ import annotations

import asyncio
import logging
import re
import shlex
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from warden.config.app import WardenConfig
from warden.health_cache import read_health_cache

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of one command invocation."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def format_command(template: str, variables: Mapping[str, Any]) -> str:
    """
    Substitute ``{name}`` placeholders in a command template.

    Every value is shell-quoted, so values coming from the health cache
    cannot inject shell syntax. Names with no value become an empty string.

    Args:
        template: Command line with placeholders
        variables: Placeholder values

    Returns:
        Command line ready for the shell
    """

    def _substitute(match: re.Match[str]) -> str:
        value = variables.get(match.group(1))
        if value is None or value == "":
            return ""
        return shlex.quote(str(value))

    return _PLACEHOLDER.sub(_substitute, template)


class CommandRunner:
    """Execute templated commands through the shell, one process per call."""

    def __init__(
        self,
        config: WardenConfig,
        cwd: Path | None = None,
        timeout: float | None = None,
        health_cache_path: Path | None = None,
    ):
        """
        Args:
            config: Loaded warden config (paths and fallback agent id)
            cwd: Working directory for commands (default: the process cwd)
            timeout: Seconds before a command is killed; None waits forever
            health_cache_path: Override for the health cache location
        """
        self.config = config
        self.cwd = cwd
        self.timeout = timeout
        self.health_cache_path = health_cache_path

    def build_variables(self, extra: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Variables available to every template, merged with extra."""
        cache = read_health_cache(self.health_cache_path)
        heartbeat = self.config.heartbeat
        variables: dict[str, Any] = {
            "repoConfig": str(self.config.repo_config_path),
            "liveConfig": str(self.config.live_config_path),
            "target": heartbeat.target,
            "agentId": (cache.agent_id if cache else None)
            or heartbeat.agent_probe.fallback_agent_id
            or "",
            "sessionId": (cache.session_id if cache else None) or "",
            "sessionKey": (cache.session_key if cache else None) or "",
        }
        if extra:
            variables.update(extra)
        return variables

    def render(self, template: str, extra: Mapping[str, Any] | None = None) -> str:
        return format_command(template, self.build_variables(extra))

    async def execute(
        self, template: str, extra: Mapping[str, Any] | None = None
    ) -> CommandResult:
        """Render template and run it."""
        return await self.run_shell(self.render(template, extra))

    async def run_shell(
        self,
        command: str,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """
        Run an already rendered command line and buffer its output.

        Args:
            command: Shell command line
            cwd: Working directory override for this call
            env: Full environment for the child (default: inherit)

        Returns:
            CommandResult; returncode -1 means the command timed out
        """
        workdir = cwd or self.cwd
        process = await asyncio.create_subprocess_shell(  # nosec B602 - operator-configured command
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(workdir) if workdir else None,
            env=dict(env) if env is not None else None,
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"Command timed out after {self.timeout}s: {command}")
            return CommandResult(
                command=command,
                returncode=-1,
                stdout="",
                stderr=f"timed out after {self.timeout}s",
            )
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        returncode = process.returncode if process.returncode is not None else -1
        return CommandResult(command=command, returncode=returncode, stdout=stdout, stderr=stderr)

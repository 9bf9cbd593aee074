"""
Background daemon supervision.

Starts, stops and reports on a detached copy of warden running
`python -m warden.runner`, tracked through a pid file. The pid file also
stores the process start time so a recycled pid is not mistaken for the
daemon.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess  # nosec B404 - subprocess needed for daemon management
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import psutil

from warden.utils.paths import get_daemon_log_file, get_pid_file

logger = logging.getLogger(__name__)

# create_time() is reported with limited precision on some platforms
START_TIME_TOLERANCE = 1.0


@dataclass
class DaemonRecord:
    """Persisted "a background warden is running" marker."""

    pid: int
    started_at: float | None = None

    def serialize(self) -> str:
        if self.started_at is None:
            return f"{self.pid}\n"
        return f"{self.pid}\n{self.started_at}\n"

    @classmethod
    def parse(cls, text: str) -> DaemonRecord | None:
        """Parse a pid file; a bare pid (no start time) is accepted."""
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        if not lines:
            return None
        try:
            pid = int(lines[0])
        except ValueError:
            return None
        if pid <= 0:
            return None
        started_at: float | None = None
        if len(lines) > 1:
            try:
                started_at = float(lines[1])
            except ValueError:
                started_at = None
        return cls(pid=pid, started_at=started_at)


@dataclass
class SupervisorResult:
    """Outcome of a supervisor operation."""

    pid: int | None
    running: bool
    message: str
    already_running: bool = False


def is_process_alive(pid: int, started_at: float | None = None) -> bool:
    """Check if a process is truly alive (not zombie, not dead, not a recycled pid).

    Args:
        pid: Process ID to check
        started_at: Recorded create_time(); when given it must match

    Returns:
        True only if the process exists, is not a zombie and (when known)
        started at the recorded time
    """
    if not psutil.pid_exists(pid):
        return False
    try:
        proc = psutil.Process(pid)
        if proc.status() == psutil.STATUS_ZOMBIE:
            return False
        if started_at is not None and abs(proc.create_time() - started_at) > START_TIME_TOLERANCE:
            logger.debug(f"PID {pid} was reused by another process")
            return False
        return True
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def process_start_time(pid: int) -> float | None:
    try:
        return psutil.Process(pid).create_time()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None


class ProcessSupervisor:
    """Idempotent start/stop/status of the background warden process."""

    def __init__(
        self,
        config_path: Path | None = None,
        pid_file: Path | None = None,
        log_file: Path | None = None,
        command: Sequence[str] | None = None,
    ):
        """
        Args:
            config_path: Config file the daemon should load (exported as WARDEN_CONFIG)
            pid_file: Daemon record location (default: state dir)
            log_file: File receiving the daemon's stdout/stderr (default: state dir)
            command: Daemon command line (default: python -m warden.runner)
        """
        self.config_path = config_path
        self.pid_file = pid_file or get_pid_file()
        self.log_file = log_file or get_daemon_log_file()
        self.command = list(command) if command else [sys.executable, "-m", "warden.runner"]

    def read_record(self) -> DaemonRecord | None:
        if not self.pid_file.exists():
            return None
        try:
            return DaemonRecord.parse(self.pid_file.read_text(encoding="utf-8"))
        except OSError as e:
            logger.debug(f"Error reading PID file: {e}")
            return None

    def write_record(self, record: DaemonRecord) -> None:
        self.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.pid_file.write_text(record.serialize(), encoding="utf-8")

    def clear_record(self) -> None:
        self.pid_file.unlink(missing_ok=True)

    def _daemon_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["WARDEN_DAEMON"] = "1"
        if self.config_path is not None:
            env["WARDEN_CONFIG"] = str(self.config_path)
        return env

    def _detach_kwargs(self) -> dict[str, Any]:
        if sys.platform == "win32":
            flags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
                subprocess, "CREATE_NEW_PROCESS_GROUP", 0
            )
            return {"creationflags": flags}
        return {"start_new_session": True}

    def start(self) -> SupervisorResult:
        """
        Start the daemon unless a live one is already recorded.

        Returns without waiting on the child.
        """
        record = self.read_record()
        if record and is_process_alive(record.pid, record.started_at):
            logger.info(f"Daemon already running (pid {record.pid}).")
            return SupervisorResult(
                pid=record.pid,
                running=True,
                message=f"Daemon already running (pid {record.pid}).",
                already_running=True,
            )
        if record:
            logger.debug(f"Removing stale PID file (PID: {record.pid})")
            self.clear_record()

        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        log_f = open(self.log_file, "a")
        try:
            process = subprocess.Popen(  # nosec B603 - cmd built from sys.executable and module path
                self.command,
                stdout=log_f,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                env=self._daemon_env(),
                **self._detach_kwargs(),
            )
        finally:
            log_f.close()

        self.write_record(DaemonRecord(pid=process.pid, started_at=process_start_time(process.pid)))
        logger.info(f"Daemon started (pid {process.pid}).")
        return SupervisorResult(
            pid=process.pid, running=True, message=f"Daemon started (pid {process.pid})."
        )

    def stop(self) -> SupervisorResult:
        """Send SIGTERM to the recorded daemon and delete the record."""
        record = self.read_record()
        if record is None:
            logger.warning("Daemon pid not found.")
            self.clear_record()
            return SupervisorResult(pid=None, running=False, message="Daemon pid not found.")

        if not is_process_alive(record.pid, record.started_at):
            self.clear_record()
            logger.info(f"Daemon not running (stale PID file with PID {record.pid}).")
            return SupervisorResult(
                pid=record.pid,
                running=False,
                message=f"Daemon not running (stale PID file with PID {record.pid}).",
            )

        try:
            os.kill(record.pid, signal.SIGTERM)
        except ProcessLookupError:
            pass  # Exited between the check and the signal
        except OSError as e:
            logger.warning(f"Failed to stop daemon: {e}")

        self.clear_record()
        logger.info(f"Daemon stopped (pid {record.pid}).")
        return SupervisorResult(
            pid=record.pid, running=False, message=f"Daemon stopped (pid {record.pid})."
        )

    def status(self) -> SupervisorResult:
        record = self.read_record()
        if record and is_process_alive(record.pid, record.started_at):
            logger.info(f"Daemon running (pid {record.pid}).")
            return SupervisorResult(
                pid=record.pid, running=True, message=f"Daemon running (pid {record.pid})."
            )
        logger.info("Daemon not running.")
        return SupervisorResult(
            pid=record.pid if record else None, running=False, message="Daemon not running."
        )

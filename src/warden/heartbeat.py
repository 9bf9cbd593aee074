"""
Gateway heartbeat monitor.

Runs the send / wait / check / probe cycle on a fixed interval and restarts
the gateway when every check in the backoff schedule fails:

    IDLE -> (SEND) -> WAIT -> CHECK -> HEALTHY -> IDLE
                       ^        |
                       +- RETRY-+-> EXHAUSTED -> RESTART -> NOTIFY -> IDLE
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass
from enum import Enum

from warden.commands import CommandRunner
from warden.config.app import WardenConfig

logger = logging.getLogger(__name__)


class HeartbeatOutcome(str, Enum):
    """How a heartbeat cycle ended."""

    HEALTHY = "healthy"
    RESTARTED = "restarted"
    SKIPPED = "skipped"


@dataclass
class HeartbeatAttempt:
    """Cycle-scoped state; never persisted."""

    cycle_id: str
    index: int = 0
    sent: bool = False


def new_cycle_id() -> str:
    """Fresh id for one cycle: epoch milliseconds plus a random suffix."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class HeartbeatMonitor:
    """
    Gateway health monitor.

    Features:
    - Static, config-driven backoff schedule (heartbeat.waitSeconds)
    - Optional agent probe after a passing check
    - Exactly one restart and at most one notify per failed cycle
    - Fixed-interval scheduling with a reentrancy guard: a tick that fires
      while a cycle is running is skipped, never queued
    - A cycle that raises is logged and the loop keeps going
    """

    def __init__(
        self,
        config: WardenConfig,
        runner: CommandRunner | None = None,
        interval: float | None = None,
    ):
        """
        Args:
            config: Loaded warden config
            runner: Command runner (default: one built from config)
            interval: Seconds between ticks (default: heartbeat.intervalMinutes)
        """
        self.config = config
        self.heartbeat = config.heartbeat
        self.runner = runner or CommandRunner(
            config, timeout=config.heartbeat.command_timeout_seconds
        )
        self.interval = interval if interval is not None else self.heartbeat.interval_seconds

        # State tracking
        self.last_outcome: HeartbeatOutcome | None = None
        self.skipped_ticks = 0
        self._in_progress = False
        self._running = False
        self._cycle_task: asyncio.Task[HeartbeatOutcome | None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def _run_step(self, label: str, template: str, attempt: HeartbeatAttempt) -> bool:
        """Run a send/restart/notify command; failures only warn."""
        try:
            result = await self.runner.execute(template, {"id": attempt.cycle_id})
        except OSError as e:
            logger.warning(f"{label} command could not be started: {e}")
            return False
        if not result.ok:
            logger.warning(f"{label} command failed: {result.stderr.strip()}")
            return False
        return True

    async def send(self, attempt: HeartbeatAttempt) -> None:
        template = self.heartbeat.send_command
        if not template:
            return
        logger.info(f"Heartbeat send: {self.runner.render(template, {'id': attempt.cycle_id})}")
        await self._run_step("Heartbeat send", template, attempt)
        attempt.sent = True

    async def check(self, attempt: HeartbeatAttempt) -> bool:
        """
        Run the health check and, when it passes, the agent probe.

        Returns:
            True only if the check passed and the probe (when enabled) passed
        """
        check_command = self.heartbeat.check_command
        if not check_command:
            return False
        variables = {"id": attempt.cycle_id}

        result = await self.runner.execute(check_command, variables)
        if not result.ok:
            logger.debug(
                f"Health check {attempt.index + 1} exited {result.returncode}: "
                f"{result.stderr.strip()}"
            )
            return False

        probe = self.heartbeat.agent_probe
        if not probe.enabled:
            return True
        if not probe.command:
            logger.warning("agentProbe enabled but command not configured; skipping probe.")
            return True

        logger.info(f"Agent probe: {self.runner.render(probe.command, variables)}")
        probe_result = await self.runner.execute(probe.command, variables)
        if not probe_result.ok:
            logger.debug(f"Agent probe {attempt.index + 1} exited {probe_result.returncode}")
        return probe_result.ok

    async def restart(self, attempt: HeartbeatAttempt) -> bool:
        return await self._run_step("Restart", self.heartbeat.restart_command, attempt)

    async def notify(self, attempt: HeartbeatAttempt) -> None:
        template = self.heartbeat.notify_command
        if not (self.heartbeat.notify_on_restart and template):
            return
        logger.info(f"Notify restart: {self.runner.render(template, {'id': attempt.cycle_id})}")
        await self._run_step("Notify", template, attempt)

    async def run_once(self) -> HeartbeatOutcome:
        """
        Run one full heartbeat cycle.

        Returns:
            HEALTHY when a check passed, RESTARTED when the schedule was
            exhausted, SKIPPED when no check command is configured
        """
        if not self.heartbeat.check_command:
            logger.warning("Heartbeat checkCommand not configured. Skipping heartbeat.")
            return HeartbeatOutcome.SKIPPED

        attempt = HeartbeatAttempt(cycle_id=new_cycle_id())
        wait_seconds = self.heartbeat.wait_seconds
        logger.debug(f"Heartbeat cycle {attempt.cycle_id} starting ({len(wait_seconds)} attempts)")

        await self.send(attempt)

        for index, seconds in enumerate(wait_seconds):
            attempt.index = index
            await self._sleep(seconds)
            if await self.check(attempt):
                logger.info("Heartbeat reply received.")
                return HeartbeatOutcome.HEALTHY

            logger.warning(f"Heartbeat check failed ({attempt.index + 1}/{len(wait_seconds)})")
            if index < len(wait_seconds) - 1:
                await self.send(attempt)

        logger.warning("Heartbeat failed after retries. Restarting gateway...")
        await self.restart(attempt)
        await self.notify(attempt)
        return HeartbeatOutcome.RESTARTED

    async def tick(self) -> HeartbeatOutcome | None:
        """
        Run one cycle unless one is already in progress.

        Returns:
            The cycle outcome, or None if the tick was skipped or the cycle raised
        """
        if self._in_progress:
            self.skipped_ticks += 1
            logger.debug("Heartbeat cycle still in progress; skipping tick")
            return None

        self._in_progress = True
        try:
            self.last_outcome = await self.run_once()
            return self.last_outcome
        except Exception as e:
            logger.error(f"Heartbeat cycle failed: {e}", exc_info=True)
            return None
        finally:
            self._in_progress = False

    def _schedule_tick(self) -> None:
        if self._cycle_task is not None and not self._cycle_task.done():
            self.skipped_ticks += 1
            logger.debug("Heartbeat cycle still in progress; skipping tick")
            return
        self._cycle_task = asyncio.create_task(self.tick(), name="heartbeat-cycle")

    async def run_forever(self) -> None:
        """
        Tick immediately, then every `interval` seconds measured from the
        start of the previous tick, until stop() is called.
        """
        if self._running:
            return

        self._running = True
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        logger.info(
            f"Heartbeat starting: interval={self.interval}s, "
            f"waitSeconds={self.heartbeat.wait_seconds}"
        )

        next_tick = loop.time()
        try:
            while self._running:
                self._schedule_tick()
                next_tick += self.interval
                delay = next_tick - loop.time()
                if delay <= 0:
                    # Fell behind; skip the missed slots instead of bursting
                    next_tick = loop.time()
                    delay = 0
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                except TimeoutError:
                    pass
        finally:
            self._running = False
            if self._cycle_task is not None and not self._cycle_task.done():
                self._cycle_task.cancel()
                await asyncio.gather(self._cycle_task, return_exceptions=True)
            self._cycle_task = None
            logger.info("Heartbeat stopped")

    def stop(self) -> None:
        """Stop the loop; an in-flight cycle is cancelled."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

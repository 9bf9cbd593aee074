"""Tests for the gateway heartbeat monitor.

Commands are replaced by a scripted runner so each scenario can decide which
checks pass; sleeps are mocked so backoff schedules run instantly.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from warden.commands import CommandResult, CommandRunner
from warden.config.app import WardenConfig
from warden.heartbeat import HeartbeatMonitor, HeartbeatOutcome, new_cycle_id

pytestmark = pytest.mark.unit


class ScriptedRunner:
    """Stands in for CommandRunner; exit codes are scripted per command."""

    def __init__(self, exit_codes: dict[str, list[int]] | None = None):
        self.exit_codes = {name: list(codes) for name, codes in (exit_codes or {}).items()}
        self.calls: list[str] = []
        self.extras: list[dict[str, Any]] = []

    def render(self, template: str, extra: dict[str, Any] | None = None) -> str:
        return template

    async def execute(self, template: str, extra: dict[str, Any] | None = None) -> CommandResult:
        self.calls.append(template)
        self.extras.append(dict(extra or {}))
        codes = self.exit_codes.get(template, [])
        code = codes.pop(0) if codes else 0
        return CommandResult(command=template, returncode=code, stdout="", stderr="")


@pytest.fixture
def heartbeat_config(make_config: Callable[..., WardenConfig]) -> Callable[..., WardenConfig]:
    def _make(**heartbeat: Any) -> WardenConfig:
        settings: dict[str, Any] = {
            "waitSeconds": [30, 40, 50],
            "checkCommand": "check",
            "restartCommand": "restart",
            "notifyCommand": "notify",
            "agentProbe": {"enabled": False},
        }
        settings.update(heartbeat)
        return make_config(heartbeat=settings)

    return _make


def make_monitor(config: WardenConfig, runner: ScriptedRunner) -> HeartbeatMonitor:
    monitor = HeartbeatMonitor(config, runner=runner)  # type: ignore[arg-type]
    monitor._sleep = AsyncMock()  # type: ignore[method-assign]
    return monitor


# ---------------------------------------------------------------------------
# run_once()
# ---------------------------------------------------------------------------


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_healthy_on_first_check(self, heartbeat_config) -> None:
        runner = ScriptedRunner()
        monitor = make_monitor(heartbeat_config(), runner)

        assert await monitor.run_once() == HeartbeatOutcome.HEALTHY
        assert runner.calls == ["check"]
        monitor._sleep.assert_awaited_once_with(30)

    @pytest.mark.asyncio
    async def test_recovers_on_second_check(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"check": [1, 0]})
        monitor = make_monitor(heartbeat_config(), runner)

        assert await monitor.run_once() == HeartbeatOutcome.HEALTHY
        assert runner.calls == ["check", "check"]
        assert "restart" not in runner.calls
        assert [c.args[0] for c in monitor._sleep.await_args_list] == [30, 40]

    @pytest.mark.asyncio
    async def test_exhausted_schedule_restarts_once_and_notifies(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"check": [1, 1, 1]})
        monitor = make_monitor(heartbeat_config(), runner)

        assert await monitor.run_once() == HeartbeatOutcome.RESTARTED
        assert runner.calls == ["check", "check", "check", "restart", "notify"]
        assert [c.args[0] for c in monitor._sleep.await_args_list] == [30, 40, 50]

    @pytest.mark.asyncio
    async def test_check_count_matches_schedule_length(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"check": [1] * 5})
        monitor = make_monitor(heartbeat_config(waitSeconds=[1, 2, 3, 4, 5]), runner)

        await monitor.run_once()
        assert runner.calls.count("check") == 5
        assert runner.calls.count("restart") == 1

    @pytest.mark.asyncio
    async def test_probe_failure_counts_as_failed_check(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"probe": [1, 1, 1]})
        config = heartbeat_config(agentProbe={"enabled": True, "command": "probe"})
        monitor = make_monitor(config, runner)

        assert await monitor.run_once() == HeartbeatOutcome.RESTARTED
        assert runner.calls == [
            "check",
            "probe",
            "check",
            "probe",
            "check",
            "probe",
            "restart",
            "notify",
        ]

    @pytest.mark.asyncio
    async def test_probe_not_run_when_check_fails(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"check": [1, 0]})
        config = heartbeat_config(agentProbe={"enabled": True, "command": "probe"})
        monitor = make_monitor(config, runner)

        assert await monitor.run_once() == HeartbeatOutcome.HEALTHY
        assert runner.calls == ["check", "check", "probe"]

    @pytest.mark.asyncio
    async def test_probe_enabled_without_command_is_skipped(self, heartbeat_config) -> None:
        runner = ScriptedRunner()
        config = heartbeat_config(agentProbe={"enabled": True, "command": None})
        monitor = make_monitor(config, runner)

        assert await monitor.run_once() == HeartbeatOutcome.HEALTHY
        assert runner.calls == ["check"]

    @pytest.mark.asyncio
    async def test_send_runs_before_first_wait_and_each_retry(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"check": [1, 1, 1]})
        monitor = make_monitor(heartbeat_config(sendCommand="send"), runner)

        await monitor.run_once()
        assert runner.calls == [
            "send",
            "check",
            "send",
            "check",
            "send",
            "check",
            "restart",
            "notify",
        ]

    @pytest.mark.asyncio
    async def test_send_failure_does_not_fail_cycle(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"send": [1]})
        monitor = make_monitor(heartbeat_config(sendCommand="send"), runner)

        assert await monitor.run_once() == HeartbeatOutcome.HEALTHY

    @pytest.mark.asyncio
    async def test_notify_disabled(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"check": [1, 1, 1]})
        monitor = make_monitor(heartbeat_config(notifyOnRestart=False), runner)

        await monitor.run_once()
        assert runner.calls[-1] == "restart"
        assert "notify" not in runner.calls

    @pytest.mark.asyncio
    async def test_restart_failure_still_notifies(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"check": [1, 1, 1], "restart": [1]})
        monitor = make_monitor(heartbeat_config(), runner)

        assert await monitor.run_once() == HeartbeatOutcome.RESTARTED
        assert runner.calls[-2:] == ["restart", "notify"]

    @pytest.mark.asyncio
    async def test_missing_check_command_skips(self, heartbeat_config) -> None:
        runner = ScriptedRunner()
        monitor = make_monitor(heartbeat_config(checkCommand=None), runner)

        assert await monitor.run_once() == HeartbeatOutcome.SKIPPED
        assert runner.calls == []
        monitor._sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_check_logs_attempt_number(
        self, heartbeat_config, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.DEBUG, logger="warden.heartbeat")
        runner = ScriptedRunner({"check": [1, 1, 1]})
        monitor = make_monitor(heartbeat_config(), runner)

        await monitor.run_once()
        assert "Health check 2 exited 1" in caplog.text
        assert "Heartbeat check failed (3/3)" in caplog.text

    @pytest.mark.asyncio
    async def test_cycle_id_passed_to_every_command(self, heartbeat_config) -> None:
        runner = ScriptedRunner({"check": [1, 1, 1]})
        monitor = make_monitor(heartbeat_config(sendCommand="send"), runner)

        await monitor.run_once()
        ids = {extra["id"] for extra in runner.extras}
        assert len(ids) == 1


# ---------------------------------------------------------------------------
# tick() / run_forever()
# ---------------------------------------------------------------------------


class TestTick:
    @pytest.mark.asyncio
    async def test_records_outcome(self, heartbeat_config) -> None:
        monitor = make_monitor(heartbeat_config(), ScriptedRunner())

        assert await monitor.tick() == HeartbeatOutcome.HEALTHY
        assert monitor.last_outcome == HeartbeatOutcome.HEALTHY
        assert monitor.in_progress is False

    @pytest.mark.asyncio
    async def test_skips_while_in_progress(self, heartbeat_config) -> None:
        runner = ScriptedRunner()
        monitor = make_monitor(heartbeat_config(), runner)
        monitor._in_progress = True

        assert await monitor.tick() is None
        assert monitor.skipped_ticks == 1
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_exception_is_logged_and_swallowed(self, heartbeat_config) -> None:
        runner = MagicMock()
        runner.render.side_effect = lambda template, extra=None: template
        runner.execute = AsyncMock(side_effect=OSError("no shell"))
        monitor = make_monitor(heartbeat_config(), runner)

        assert await monitor.tick() is None
        assert monitor.in_progress is False

    @pytest.mark.asyncio
    async def test_overlapping_ticks_are_skipped(self, heartbeat_config) -> None:
        monitor = make_monitor(heartbeat_config(), ScriptedRunner())
        monitor.interval = 0.02

        started = asyncio.Event()

        async def slow_cycle() -> HeartbeatOutcome:
            started.set()
            await asyncio.sleep(10)
            return HeartbeatOutcome.HEALTHY

        monitor.run_once = AsyncMock(side_effect=slow_cycle)  # type: ignore[method-assign]
        task = asyncio.create_task(monitor.run_forever())
        await asyncio.wait_for(started.wait(), timeout=2)
        await asyncio.sleep(0.15)
        monitor.stop()
        await asyncio.wait_for(task, timeout=2)

        assert monitor.run_once.await_count == 1
        assert monitor.skipped_ticks >= 2
        assert monitor.in_progress is False

    @pytest.mark.asyncio
    async def test_loop_survives_failing_cycle(self, heartbeat_config) -> None:
        monitor = make_monitor(heartbeat_config(), ScriptedRunner())
        monitor.interval = 0.02
        calls = 0

        async def flaky_cycle() -> HeartbeatOutcome:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return HeartbeatOutcome.HEALTHY

        monitor.run_once = AsyncMock(side_effect=flaky_cycle)  # type: ignore[method-assign]
        task = asyncio.create_task(monitor.run_forever())
        await asyncio.sleep(0.2)
        monitor.stop()
        await asyncio.wait_for(task, timeout=2)

        assert calls >= 2
        assert monitor.last_outcome == HeartbeatOutcome.HEALTHY

    @pytest.mark.asyncio
    async def test_stop_before_run_is_harmless(self, heartbeat_config) -> None:
        monitor = make_monitor(heartbeat_config(), ScriptedRunner())
        monitor.stop()
        assert monitor.in_progress is False


class TestCycleId:
    def test_unique(self) -> None:
        assert new_cycle_id() != new_cycle_id()

    def test_format(self) -> None:
        millis, suffix = new_cycle_id().split("-")
        assert millis.isdigit()
        assert len(suffix) == 6


# ---------------------------------------------------------------------------
# Health cache interaction
# ---------------------------------------------------------------------------


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")
class TestCorruptHealthCache:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content",
        [b'{"ok": true, "updatedAt": "yesterday"}', b"\xff\xfe not json"],
    )
    async def test_restart_still_runs(self, heartbeat_config, temp_dir, content: bytes) -> None:
        cache_path = temp_dir / "health.json"
        cache_path.write_bytes(content)
        marker = temp_dir / "restarted"
        config = heartbeat_config(
            waitSeconds=[0], checkCommand="exit 1", restartCommand=f"touch {marker}"
        )
        runner = CommandRunner(config, health_cache_path=cache_path)
        monitor = HeartbeatMonitor(config, runner=runner)
        monitor._sleep = AsyncMock()  # type: ignore[method-assign]

        assert await monitor.tick() == HeartbeatOutcome.RESTARTED
        assert marker.exists()

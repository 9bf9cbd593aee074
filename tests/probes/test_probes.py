"""Tests for the bundled health check and agent probe commands."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from warden.health_cache import HealthCache, read_health_cache, write_health_cache
from warden.probes import agent, health
from warden.probes.health import agent_id_from_session_key, build_cache, check_health

pytestmark = pytest.mark.unit


def completed(stdout: str, returncode: int = 0) -> MagicMock:
    return MagicMock(stdout=stdout, stderr="", returncode=returncode)


class TestAgentIdFromSessionKey:
    @pytest.mark.parametrize(
        "key,expected",
        [
            ("agent:main:telegram:42", "main"),
            ("agent:ops", "ops"),
            ("agent::x", None),
            ("user:main", None),
            (None, None),
        ],
    )
    def test_parse(self, key: str | None, expected: str | None) -> None:
        assert agent_id_from_session_key(key) == expected


class TestBuildCache:
    def test_prefers_default_agent(self) -> None:
        cache = build_cache(
            {"ok": True, "defaultAgentId": "ops", "sessions": {"recent": [{"key": "agent:main:x"}]}}
        )
        assert cache.agent_id == "ops"
        assert cache.session_key == "agent:main:x"

    def test_agent_from_session_key(self) -> None:
        cache = build_cache({"ok": True, "sessions": {"recent": [{"key": "agent:main:x"}]}})
        assert cache.agent_id == "main"

    def test_session_id_from_sessions_file(self, temp_dir: Path) -> None:
        sessions_file = temp_dir / "sessions.json"
        sessions_file.write_text(json.dumps({"agent:main:x": {"sessionId": "sess-9"}}))
        cache = build_cache(
            {
                "ok": True,
                "sessions": {"path": str(sessions_file), "recent": [{"key": "agent:main:x"}]},
            }
        )
        assert cache.session_id == "sess-9"
        assert cache.sessions_path == str(sessions_file)

    def test_no_sessions(self) -> None:
        cache = build_cache({"ok": True})
        assert cache.agent_id is None
        assert cache.session_key is None


class TestCheckHealth:
    def test_healthy_writes_cache(self, temp_dir: Path) -> None:
        cache_path = temp_dir / "health.json"
        stdout = 'Gateway call...\n{"ok": true, "defaultAgentId": "main"}\n'
        with patch("warden.probes.health.subprocess.run", return_value=completed(stdout)) as run:
            assert check_health("openclaw", cache_path) is True
        assert run.call_args.args[0] == ["openclaw", "gateway", "call", "health", "--json"]
        assert read_health_cache(cache_path).agent_id == "main"

    def test_not_ok(self, temp_dir: Path) -> None:
        cache_path = temp_dir / "health.json"
        with patch(
            "warden.probes.health.subprocess.run", return_value=completed('{"ok": false}')
        ):
            assert check_health("openclaw", cache_path) is False
        assert not cache_path.exists()

    def test_no_json(self, temp_dir: Path) -> None:
        with patch("warden.probes.health.subprocess.run", return_value=completed("error", 1)):
            assert check_health("openclaw", temp_dir / "health.json") is False

    def test_binary_missing(self, temp_dir: Path) -> None:
        with patch("warden.probes.health.subprocess.run", side_effect=FileNotFoundError()):
            assert check_health("nope", temp_dir / "health.json") is False

    def test_main_exit_codes(self) -> None:
        with patch.object(health, "check_health", return_value=True):
            with pytest.raises(SystemExit) as exc_info:
                health.main([])
        assert exc_info.value.code == 0

        with patch.object(health, "check_health", return_value=False):
            with pytest.raises(SystemExit) as exc_info:
                health.main(["--gateway-bin", "gw"])
        assert exc_info.value.code == 1


class TestProbeAgent:
    def test_uses_cached_agent(self, temp_dir: Path) -> None:
        cache_path = temp_dir / "health.json"
        write_health_cache(HealthCache(ok=True, agent_id="ops"), cache_path)
        with patch(
            "warden.probes.agent.subprocess.run", return_value=completed('{"status": "ok"}')
        ) as run:
            assert agent.probe_agent("openclaw", "main", cache_path) is True
        cmd = run.call_args.args[0]
        assert cmd[:4] == ["openclaw", "agent", "--agent", "ops"]
        assert "healthcheck" in cmd

    def test_fallback_agent(self, temp_dir: Path) -> None:
        with patch(
            "warden.probes.agent.subprocess.run", return_value=completed('{"status": "ok"}')
        ) as run:
            agent.probe_agent("openclaw", "backup", temp_dir / "none.json")
        assert run.call_args.args[0][3] == "backup"

    def test_non_ok_status(self, temp_dir: Path) -> None:
        with patch(
            "warden.probes.agent.subprocess.run", return_value=completed('{"status": "error"}')
        ):
            assert agent.probe_agent("openclaw", "main", temp_dir / "none.json") is False

    def test_main_exit_code(self) -> None:
        with patch.object(agent, "probe_agent", return_value=False) as probe:
            with pytest.raises(SystemExit) as exc_info:
                agent.main(["--fallback-agent", "ops"])
        assert exc_info.value.code == 1
        probe.assert_called_once_with("openclaw", "ops")

"""
Gateway health check.

Calls `openclaw gateway call health --json`, and on an ``ok: true`` reply
records the default agent and most recent session in the health cache so
later command templates can address them.

Usage:
    python -m warden.probes.health [--gateway-bin openclaw]
"""

from __future__ import annotations

import argparse
import json
import logging
import subprocess  # nosec B404 - subprocess needed to call the gateway CLI
import sys
from pathlib import Path
from typing import Any

from warden.health_cache import HealthCache, write_health_cache
from warden.utils.json_helpers import extract_json_object

logger = logging.getLogger(__name__)


def agent_id_from_session_key(session_key: str | None) -> str | None:
    """Session keys look like ``agent:<agentId>:<rest>``."""
    if not isinstance(session_key, str) or not session_key.startswith("agent:"):
        return None
    return session_key.split(":")[1] or None


def read_session_id(sessions_path: str | None, session_key: str | None) -> str | None:
    """Look up a session's id in the gateway's sessions index file."""
    if not sessions_path or not session_key:
        return None
    try:
        data = json.loads(Path(sessions_path).expanduser().read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    entry = data.get(session_key)
    if not isinstance(entry, dict):
        return None
    return entry.get("sessionId") or None


def build_cache(payload: dict[str, Any]) -> HealthCache:
    """Turn a healthy gateway reply into a cache record."""
    sessions = payload.get("sessions") if isinstance(payload.get("sessions"), dict) else {}
    recent = sessions.get("recent") or []
    first = recent[0] if recent and isinstance(recent[0], dict) else {}
    session_key = first.get("key") or None
    sessions_path = sessions.get("path") or None

    agent_id = payload.get("defaultAgentId") or agent_id_from_session_key(session_key)
    return HealthCache(
        ok=True,
        agent_id=agent_id,
        session_id=read_session_id(sessions_path, session_key),
        session_key=session_key,
        sessions_path=sessions_path,
    )


def check_health(gateway_bin: str = "openclaw", cache_path: Path | None = None) -> bool:
    """
    Ask the gateway for its health and refresh the cache when it is ok.

    Returns:
        True if the gateway replied with ok=true
    """
    try:
        result = subprocess.run(  # nosec B603 - fixed argument vector
            [gateway_bin, "gateway", "call", "health", "--json"],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        logger.debug(f"Cannot run {gateway_bin}: {e}")
        return False

    payload = extract_json_object(result.stdout or "")
    if not payload or payload.get("ok") is not True:
        return False

    try:
        write_health_cache(build_cache(payload), cache_path)
    except OSError as e:
        logger.debug(f"Ignoring health cache write error: {e}")
    return True


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Check gateway health and refresh the health cache")
    parser.add_argument("--gateway-bin", default="openclaw", help="Gateway CLI executable")
    args = parser.parse_args(argv)
    sys.exit(0 if check_health(args.gateway_bin) else 1)


if __name__ == "__main__":
    main()

"""
Agent round-trip probe.

Sends a `healthcheck` message to the agent recorded in the health cache
(falling back to --fallback-agent) and succeeds when the agent answers with
``status: ok``.

Usage:
    python -m warden.probes.agent [--gateway-bin openclaw] [--fallback-agent main]
"""

from __future__ import annotations

import argparse
import logging
import subprocess  # nosec B404 - subprocess needed to call the gateway CLI
import sys
from pathlib import Path

from warden.health_cache import read_health_cache
from warden.utils.json_helpers import extract_json_object

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 60


def probe_agent(
    gateway_bin: str = "openclaw",
    fallback_agent_id: str = "main",
    cache_path: Path | None = None,
) -> bool:
    """
    Run one agent round trip.

    Returns:
        True if the agent replied with status=ok
    """
    cache = read_health_cache(cache_path)
    agent_id = (cache.agent_id if cache else None) or fallback_agent_id

    cmd = [
        gateway_bin,
        "agent",
        "--agent",
        agent_id,
        "-m",
        "healthcheck",
        "--json",
        "--timeout",
        str(PROBE_TIMEOUT_SECONDS),
    ]
    try:
        result = subprocess.run(  # nosec B603 - fixed argument vector
            cmd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        logger.debug(f"Cannot run {gateway_bin}: {e}")
        return False

    payload = extract_json_object(result.stdout or "")
    return bool(payload) and payload.get("status") == "ok"


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Probe the gateway agent with a healthcheck message")
    parser.add_argument("--gateway-bin", default="openclaw", help="Gateway CLI executable")
    parser.add_argument("--fallback-agent", default="main", help="Agent id when the cache has none")
    args = parser.parse_args(argv)
    sys.exit(0 if probe_agent(args.gateway_bin, args.fallback_agent) else 1)


if __name__ == "__main__":
    main()

"""
Health cache shared between the check command and later command templates.

The health probe writes the agent/session it saw on every successful check;
command templates ({agentId}, {sessionId}, {sessionKey}) read it back. A
missing or unreadable cache means "no data yet".
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from warden.utils.paths import get_health_cache_file

logger = logging.getLogger(__name__)


@dataclass
class HealthCache:
    """Last known gateway health snapshot."""

    ok: bool
    agent_id: str | None = None
    session_id: str | None = None
    session_key: str | None = None
    sessions_path: str | None = None
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "agentId": self.agent_id,
            "sessionId": self.session_id,
            "sessionKey": self.session_key,
            "sessionsPath": self.sessions_path,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HealthCache:
        return cls(
            ok=bool(data.get("ok")),
            agent_id=_text(data.get("agentId")),
            session_id=_text(data.get("sessionId")),
            session_key=_text(data.get("sessionKey")),
            sessions_path=_text(data.get("sessionsPath")),
            updated_at=_coerce_millis(data.get("updatedAt")),
        )


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _coerce_millis(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def read_health_cache(path: Path | None = None) -> HealthCache | None:
    """Read the cache, returning None when it is absent or corrupt."""
    cache_file = path or get_health_cache_file()
    if not cache_file.exists():
        return None
    try:
        data = json.loads(cache_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        # ValueError covers bad JSON and non-UTF-8 bytes
        logger.debug(f"Ignoring unreadable health cache {cache_file}: {e}")
        return None
    if not isinstance(data, dict):
        return None
    return HealthCache.from_dict(data)


def write_health_cache(cache: HealthCache, path: Path | None = None) -> Path:
    """
    Overwrite the cache (last writer wins).

    The file is replaced atomically so readers never see a partial record.

    Args:
        cache: Snapshot to persist; updated_at is stamped when it is 0
        path: Override for the cache location

    Returns:
        Path the cache was written to
    """
    cache_file = path or get_health_cache_file()
    cache_file.parent.mkdir(parents=True, exist_ok=True)
    if not cache.updated_at:
        cache.updated_at = int(time.time() * 1000)

    fd, temp_path = tempfile.mkstemp(dir=str(cache_file.parent), prefix=".health_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(cache.to_dict(), f, indent=2)
        os.replace(temp_path, cache_file)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise
    return cache_file

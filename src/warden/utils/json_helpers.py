"""JSON extraction utilities for parsing CLI output.

Gateway and agent CLIs print progress lines before their JSON payload, so
the payload has to be picked out of mixed text.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """
    Extract the last JSON object from command output.

    Lines are scanned from the end; the first line that starts with ``{`` and
    decodes as an object wins. When no single line holds the payload (pretty
    printed output), decoding is retried from every line that opens an object
    at column 0, latest first, and finally from the last ``{`` in the text.

    Uses json.JSONDecoder.raw_decode() so trailing text after the object is
    ignored.

    Args:
        text: Raw stdout of a command

    Returns:
        Decoded object, or None if no JSON object was found.

    Examples:
        >>> extract_json_object('loading...\\n{"ok": true}')
        {'ok': True}

        >>> extract_json_object('No JSON here') is None
        True
    """
    if not text:
        return None

    decoder = json.JSONDecoder()

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    for line in reversed(lines):
        if not line.startswith("{"):
            continue
        try:
            value, _ = decoder.raw_decode(line)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value

    # Top-level objects open at column 0; try the latest first
    positions: list[int] = []
    offset = 0
    for raw_line in text.splitlines(keepends=True):
        if raw_line.startswith("{"):
            positions.append(offset)
        offset += len(raw_line)
    positions.reverse()
    positions.append(text.rfind("{"))

    for pos in positions:
        if pos < 0:
            continue
        try:
            value, _ = decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value

    logger.debug("No JSON object found in command output")
    return None

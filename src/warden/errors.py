"""
Exception types raised by warden operations.

One-shot CLI commands turn any WardenError into an error line and exit 1.
Long-running loops catch them per cycle and keep going.
"""

from __future__ import annotations

__all__ = [
    "WardenError",
    "ConfigNotFoundError",
    "MalformedConfigError",
    "SchemaNotFoundError",
    "SchemaValidationError",
    "LiveConfigMissingError",
    "SchemaUpdateError",
]


class WardenError(Exception):
    """Base class for warden errors."""


class ConfigNotFoundError(WardenError):
    """A required config file (warden config or managed copy) does not exist."""


class MalformedConfigError(WardenError):
    """A config file exists but cannot be parsed."""


class SchemaNotFoundError(WardenError):
    """The schema file has not been generated yet."""


class SchemaValidationError(WardenError):
    """The managed copy violates the schema.

    Carries every violation, not just the first one.
    """

    def __init__(self, errors: list[str]):
        self.errors = errors
        detail = "\n".join(errors)
        super().__init__(f"Schema validation failed:\n{detail}")


class LiveConfigMissingError(WardenError):
    """The live config file does not exist, so there is nothing to pull."""


class SchemaUpdateError(WardenError):
    """Fetching or exporting the schema failed."""

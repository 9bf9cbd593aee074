"""
Logging configuration module.

Contains logging-related Pydantic config models:
- LoggingSettings: log level and log file destination
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["LoggingSettings"]


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Log level",
    )
    file: str | None = Field(
        default=None,
        description="Log file path (default: warden.log in the state directory)",
    )

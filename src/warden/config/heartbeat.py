"""
Heartbeat configuration module.

Contains configuration for the health-check / backoff / restart / notify
cycle that keeps the gateway process alive.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

__all__ = ["AgentProbeConfig", "HeartbeatConfig"]


class AgentProbeConfig(BaseModel):
    """Secondary probe run after the primary check passes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    enabled: bool = Field(
        default=True,
        description="Require the agent probe to pass before a cycle counts as healthy",
    )
    fallback_agent_id: str = Field(
        default="main",
        description="Agent id substituted for {agentId} when the health cache has none",
    )
    command: str | None = Field(
        default="warden-agent-probe",
        description="Probe command template; exit code 0 means the agent answered",
    )


class HeartbeatConfig(BaseModel):
    """Configuration for the gateway heartbeat loop."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    interval_minutes: float = Field(
        default=5,
        description="Minutes between the starts of two heartbeat cycles (minimum 1)",
    )
    wait_seconds: list[float] = Field(
        default_factory=lambda: [30, 40, 50],
        description="Ordered backoff schedule; one check runs after each wait",
    )
    check_command: str | None = Field(
        default="warden-check-health",
        description="Health check command template; exit code 0 means healthy",
    )
    send_command: str | None = Field(
        default=None,
        description="Optional command run before the first wait and before each retry",
    )
    restart_command: str = Field(
        default="openclaw gateway restart",
        description="Command run once when every check in the schedule failed",
    )
    notify_command: str | None = Field(
        default=(
            'openclaw agent --agent {agentId} -m "[warden] gateway restarted after '
            'failed health check" --channel last --deliver'
        ),
        description="Command run after a restart attempt to notify the operator",
    )
    notify_on_restart: bool = Field(
        default=True,
        description="Run notify_command after a restart attempt",
    )
    target: str = Field(
        default="",
        description="Free-form value substituted for {target} in command templates",
    )
    command_timeout_seconds: float | None = Field(
        default=None,
        description="Kill heartbeat subcommands that run longer than this (no limit by default)",
    )
    agent_probe: AgentProbeConfig = Field(
        default_factory=AgentProbeConfig,
        description="Secondary agent probe settings",
    )

    @field_validator("interval_minutes")
    @classmethod
    def clamp_interval(cls, v: float) -> float:
        """Intervals shorter than one minute are raised to one minute."""
        return max(1.0, v)

    @field_validator("wait_seconds")
    @classmethod
    def validate_wait_seconds(cls, v: list[float]) -> list[float]:
        """Validate the backoff schedule."""
        if not v:
            raise ValueError("waitSeconds must contain at least one entry")
        if any(seconds < 0 for seconds in v):
            raise ValueError("waitSeconds entries must be non-negative")
        return v

    @field_validator("command_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("commandTimeoutSeconds must be positive")
        return v

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60

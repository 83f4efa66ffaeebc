"""Daemon configuration."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from spindownd.controllers.spindown import SpindownPolicy
from spindownd.environments.probe import (
    DEFAULT_SPINDOWN_COMMAND,
    DEFAULT_STANDBY_COMMAND,
    CommandProbe,
)

NS_PER_SECOND = 1_000_000_000


class SpindownConfig(BaseModel):
    """Validated daemon settings.

    Durations are whole seconds. Values are usually handed over as the
    raw strings from the command line and coerced here, so a
    ValidationError means an invalid option value.
    """

    model_config = ConfigDict(frozen=True)

    devices: list[str] = Field(
        min_length=1, description="Device identifiers to monitor"
    )
    spindown_limit: int = Field(
        default=6,
        ge=1,
        description="Maximum spindowns per device per budget period",
    )
    check_interval: int = Field(
        default=180, ge=1, description="Seconds between checks"
    )
    spindown_time: int = Field(
        default=1800,
        ge=1,
        description="Idle seconds before a disk is spun down",
    )
    spindown_limit_period: int = Field(
        default=86400,
        ge=1,
        description="Seconds between spindown budget resets",
    )
    verbose: bool = Field(default=False, description="Enable debug logging")
    standby_command: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STANDBY_COMMAND),
        min_length=1,
        description="Power state query command, {device} is substituted",
    )
    spindown_command: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SPINDOWN_COMMAND),
        min_length=1,
        description="Spindown command, {device} is substituted",
    )
    command_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds before a probe command is killed (no limit if unset)",
    )

    @model_validator(mode="after")
    def check_minimums(self) -> "SpindownConfig":
        """Enforce the ordering between the three durations."""
        if self.spindown_time < self.check_interval:
            raise ValueError(
                f"spindown time ({self.spindown_time}s) must be at least "
                f"the check interval ({self.check_interval}s)"
            )
        if self.spindown_limit_period < self.spindown_time:
            raise ValueError(
                f"spindown limit period ({self.spindown_limit_period}s) "
                f"must be at least the spindown time ({self.spindown_time}s)"
            )
        return self

    @property
    def check_interval_ns(self) -> int:
        return self.check_interval * NS_PER_SECOND

    @property
    def spindown_time_ns(self) -> int:
        return self.spindown_time * NS_PER_SECOND

    @property
    def spindown_limit_period_ns(self) -> int:
        return self.spindown_limit_period * NS_PER_SECOND

    def build_policy(self) -> SpindownPolicy:
        """Create the spindown policy for these settings."""
        return SpindownPolicy(
            spindown_limit=self.spindown_limit,
            spindown_time_ns=self.spindown_time_ns,
        )

    def build_probe(self) -> CommandProbe:
        """Create the command probe for these settings."""
        return CommandProbe(
            standby_command=self.standby_command,
            spindown_command=self.spindown_command,
            timeout=self.command_timeout,
        )

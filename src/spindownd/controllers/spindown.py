"""Spindown decision policy."""

import logging

from pydantic import BaseModel, Field

from spindownd.base.device import Device

logger = logging.getLogger(__name__)


class SpindownPolicy(BaseModel):
    """Decides whether a device should be spun down on this tick.

    A device is spun down when all of the following hold:

    - its spindown budget is not used up
    - it is believed to be active
    - it has been idle for at least ``spindown_time_ns``
    - it did not just wake up without any I/O showing in its counters

    The last rule covers the few seconds after a real wake-up during
    which the power state already reads active but the counters have
    not caught up yet. Spinning the disk down again in that window
    would just make it thrash.
    """

    spindown_limit: int = Field(
        default=6, ge=1, description="Spindowns allowed per budget period"
    )
    spindown_time_ns: int = Field(
        default=1800 * 1_000_000_000,
        gt=0,
        description="Idle time before spindown, in nanoseconds",
    )

    def should_spin_down(
        self, device: Device, now: int, spun_up: bool, had_io: bool
    ) -> bool:
        """Apply the policy to a device that was updated this tick."""
        if device.spindown_count >= self.spindown_limit:
            return False
        if device.standby:
            return False
        if now < device.last_activity_time + self.spindown_time_ns:
            return False
        if spun_up and not had_io:
            logger.debug(
                "%s is idle but just woke up without I/O, "
                "not spinning down this tick",
                device.name,
            )
            return False
        return True

    def is_exhausted(self, device: Device) -> bool:
        """Whether the device has used its whole spindown budget."""
        return device.spindown_count >= self.spindown_limit

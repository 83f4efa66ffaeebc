"""Per-disk activity and power-state tracking."""

import logging
from typing import Any

from pydantic import ConfigDict, Field

from .entity import Entity
from .errors import ProbeError
from .probe import DeviceProbe, PowerState
from .sample import CounterSample


class Device(Entity):
    """One monitored disk and everything the daemon believes about it.

    A Device is created once at startup from the administrator's list
    and lives for the whole process lifetime. Going offline marks it,
    it is never removed. The scheduler drives it once per tick through:

    1. update_disk_stats() - did the I/O counters change?
    2. update_standby() - did the disk wake up since we last looked?
    3. classify() - log anything surprising about 1 and 2
    4. spindown() - only when the spindown policy says so

    ``standby`` is a cached belief, valid as of the last successful
    power state query or our own successful spindown command.
    """

    model_config = ConfigDict(frozen=False)

    last_sample: CounterSample = Field(
        description="Most recently observed counters for this disk"
    )
    last_activity_time: int = Field(
        description="Timestamp (ns) of the last detected counter change"
    )
    standby: bool = Field(
        default=False, description="Whether the disk is believed spun down"
    )
    online: bool = Field(
        default=True,
        description="Whether the disk appeared in the latest snapshot",
    )
    spindown_count: int = Field(
        default=0,
        ge=0,
        description="Spindowns issued since the last budget reset",
    )

    def __init__(self, **data: Any) -> None:
        """Initialize device with a logger tagged by its name."""
        if "last_activity_time" not in data and "last_sample" in data:
            sample = data["last_sample"]
            data["last_activity_time"] = (
                sample.timestamp
                if isinstance(sample, CounterSample)
                else sample["timestamp"]
            )
        if "unique_id" not in data and "uuid" not in data and "name" in data:
            data["unique_id"] = f"/dev/{data['name']}"
        super().__init__(**data)
        self._logger = logging.getLogger(
            f"{self.__class__.__module__}."
            f"{self.__class__.__name__}."
            f"{self.name}"
        )

    @property
    def path(self) -> str:
        """Absolute device node path handed to probe commands."""
        return f"/dev/{self.name}"

    def update_disk_stats(self, sample: CounterSample) -> bool:
        """Store a fresh sample and report whether I/O happened.

        Counters are compared for inequality rather than growth: a
        replugged disk restarts at zero, and that must count as
        activity instead of being ignored as going backwards.

        Returns:
            True if reads or writes differ from the previous sample
        """
        had_io = sample.counters() != self.last_sample.counters()
        if had_io:
            if sample.reads < self.last_sample.reads or (
                sample.writes < self.last_sample.writes
            ):
                self._logger.debug(
                    "Counters went backwards (%d/%d -> %d/%d), "
                    "disk was probably replugged",
                    self.last_sample.reads,
                    self.last_sample.writes,
                    sample.reads,
                    sample.writes,
                )
            self.last_activity_time = sample.timestamp
        self.last_sample = sample
        return had_io

    def update_standby(self, probe: DeviceProbe) -> bool:
        """Query the power state and report a standby -> active transition.

        Raises:
            ProbeError: If the power state query fails. The cached
                belief is left unchanged.
        """
        was_standby = self.standby
        self.standby = probe.query_standby(self.name) is PowerState.STANDBY
        return was_standby and not self.standby

    def classify(self, spun_up: bool, had_io: bool) -> None:
        """Log the combination of wake-up and I/O seen this tick."""
        if spun_up and had_io:
            self._logger.info("Spun up due to I/O")
        elif spun_up:
            # Power state is reported several seconds before the I/O
            # counters catch up with the access that woke the disk.
            self._logger.warning(
                "Spun up without I/O in the counters "
                "(still waking up, or woken by something else)"
            )
        elif had_io and self.standby:
            self._logger.warning(
                "I/O occurred while believed to be in standby; "
                "power state was changed outside spindownd"
            )

    def spindown(self, probe: DeviceProbe) -> None:
        """Command the disk into standby.

        The attempt always counts against the budget, even on failure,
        since a failed command may still have affected the drive.

        Raises:
            ProbeError: If the spindown command fails. ``standby`` is
                left unchanged because the outcome is unknown.
        """
        self.spindown_count += 1
        try:
            probe.spindown(self.name)
        except ProbeError:
            self._logger.debug(
                "Spindown attempt %d failed", self.spindown_count
            )
            raise
        self.standby = True
        self._logger.info("Spun down (%d since last reset)",
                          self.spindown_count)

    def reset_spindowns(self) -> None:
        """Reset the spindown budget."""
        self.spindown_count = 0

    def mark_offline(self) -> bool:
        """Mark the disk as missing from the snapshot.

        Returns:
            True if this call changed the state (first tick missing)
        """
        if not self.online:
            return False
        self.online = False
        self._logger.info("Went offline")
        return True

    def mark_online(self, sample: CounterSample) -> bool:
        """Mark the disk as present again, adopting sample as baseline.

        No activity is inferred for the time the disk was missing.

        Returns:
            True if this call changed the state (first tick back)
        """
        if self.online:
            return False
        self.online = True
        self.last_sample = sample
        self._logger.info("Came back online")
        return True

    def __str__(self) -> str:
        """Return the kernel device name."""
        return self.name

"""The spindown scheduler: one tick updates and acts on every device."""

import logging
from typing import Iterable

from pydantic import ConfigDict, Field

from spindownd.base.device import Device
from spindownd.base.errors import DeviceResolutionError, ProbeError
from spindownd.base.probe import DeviceProbe
from spindownd.base.process import Process
from spindownd.base.sample import StatsSnapshot
from spindownd.controllers.spindown import SpindownPolicy
from spindownd.environments.diskstats import DiskstatsReader
from spindownd.environments.names import normalize

logger = logging.getLogger(__name__)


class SpindownScheduler(Process):
    """Drives every monitored device once per check interval.

    Each tick:

    - resets all spindown budgets if a full budget period has passed
      since the last reset
    - reads one statistics snapshot
    - walks the devices in the order the administrator listed them:
      online check, counter update, power state update, diagnostics,
      and finally the spindown policy

    A ProbeError only affects the device it was raised for; the tick
    carries on with the remaining devices. Any other exception, such
    as the statistics table becoming unreadable, propagates.
    """

    model_config = ConfigDict(frozen=False, arbitrary_types_allowed=True)

    devices: list[Device] = Field(
        default_factory=list,
        description="Monitored devices, in administrator order",
    )
    reader: DiskstatsReader = Field(
        default_factory=DiskstatsReader,
        description="Source of statistics snapshots",
    )
    probe: DeviceProbe = Field(
        description="Power state query and spindown capability"
    )
    policy: SpindownPolicy = Field(
        default_factory=SpindownPolicy,
        description="Spindown decision policy",
    )
    budget_period_ns: int = Field(
        default=86400 * 1_000_000_000,
        gt=0,
        description="Interval between spindown budget resets (ns)",
    )
    budget_reset_time: int = Field(
        default=0,
        description="Anchor of the current budget period (ns)",
    )

    def initialize(self) -> None:
        """Start the tick schedule and the first budget period now."""
        super().initialize()
        self.budget_reset_time = self.start_time

    def get_device(self, name: str) -> Device | None:
        """Get a device by name. Returns None if not found."""
        for device in self.devices:
            if device.name == name:
                return device
        return None

    def _execute(self) -> None:
        """Run one tick."""
        self._check_budget_reset()

        snapshot = self.reader.read()
        for device in self.devices:
            try:
                self._update_device(device, snapshot)
            except ProbeError as e:
                self._logger.error("Device %s: %s", device.name, e)

    def _update_device(self, device: Device, snapshot: StatsSnapshot) -> None:
        sample = snapshot.get_sample(device.name)
        if sample is None:
            device.mark_offline()
            return
        device.mark_online(sample)

        had_io = device.update_disk_stats(sample)
        spun_up = device.update_standby(self.probe)
        device.classify(spun_up, had_io)

        if not self.policy.should_spin_down(
            device, self.get_time(), spun_up, had_io
        ):
            return
        try:
            device.spindown(self.probe)
        finally:
            if self.policy.is_exhausted(device):
                self._logger.warning(
                    "Device %s reached its limit of %d spindowns, "
                    "no more spindowns until the next budget reset",
                    device.name,
                    self.policy.spindown_limit,
                )

    def _check_budget_reset(self) -> None:
        now = self.get_time()
        if now - self.budget_reset_time < self.budget_period_ns:
            return
        self._logger.info(
            "Spindowns since last budget reset: %s", self.summary()
        )
        for device in self.devices:
            device.reset_spindowns()
        self.budget_reset_time += self.budget_period_ns

    def summary(self) -> str:
        """Per-device spindown counts, e.g. ``sda=2, sdb=0``."""
        return ", ".join(
            f"{device.name}={device.spindown_count}"
            for device in self.devices
        )


def create_devices(
    identifiers: Iterable[str],
    snapshot: StatsSnapshot,
    probe: DeviceProbe | None = None,
    dev_dir: str = "/dev",
) -> list[Device]:
    """Resolve identifiers into Devices seeded from snapshot.

    Duplicates (two identifiers naming the same disk) are collapsed.
    If a probe is given, each device's initial power state is queried;
    a failing query leaves the device believed active.

    Raises:
        DeviceResolutionError: If an identifier does not resolve, or
            the resolved disk has no entry in the snapshot
    """
    devices: list[Device] = []
    seen: set[str] = set()
    for identifier in identifiers:
        name = normalize(identifier, dev_dir=dev_dir)
        if name in seen:
            logger.warning("%s is listed more than once", name)
            continue
        seen.add(name)

        sample = snapshot.get_sample(name)
        if sample is None:
            raise DeviceResolutionError(
                f"{identifier}: {name} has no entry in the disk statistics"
            )
        device = Device(name=name, last_sample=sample)
        if probe is not None:
            try:
                device.update_standby(probe)
            except ProbeError as e:
                logger.warning(
                    "Could not query initial power state of %s: %s",
                    name,
                    e,
                )
        devices.append(device)
    return devices

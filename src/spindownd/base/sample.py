"""Counter samples and point-in-time snapshots of disk statistics."""

from pydantic import BaseModel, ConfigDict, Field


class CounterSample(BaseModel):
    """Cumulative I/O counters of one block device at one moment.

    Counters only grow while the device stays attached, but restart at
    zero when a disk is removed and replugged under the same name.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Kernel block device name")
    timestamp: int = Field(
        description="Capture time in nanoseconds on the monotonic clock"
    )
    reads: int = Field(ge=0, description="Completed reads")
    writes: int = Field(ge=0, description="Completed writes")

    def counters(self) -> tuple[int, int]:
        """Return the (reads, writes) pair."""
        return self.reads, self.writes


class StatsSnapshot(BaseModel):
    """All counter samples read from the statistics table in one pass.

    Every sample shares the snapshot's capture timestamp. Snapshots are
    immutable so a tick always works against one consistent reading.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(
        description="Capture time in nanoseconds on the monotonic clock"
    )
    samples: dict[str, CounterSample] = Field(
        default_factory=dict, description="Samples indexed by device name"
    )

    def get_sample(self, name: str) -> CounterSample | None:
        """Get a sample by device name, returning None if absent."""
        return self.samples.get(name)

    def has_device(self, name: str) -> bool:
        """Check if the named device appears in this snapshot."""
        return name in self.samples

    def device_names(self) -> list[str]:
        """Return a list of all device names in this snapshot."""
        return list(self.samples.keys())

    def device_count(self) -> int:
        """Return the number of devices in this snapshot."""
        return len(self.samples)

    def __repr__(self) -> str:
        """Return a string representation showing device count and names."""
        device_names = ", ".join(self.device_names())
        return f"StatsSnapshot({self.device_count()} devices: {device_names})"

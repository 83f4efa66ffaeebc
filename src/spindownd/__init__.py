"""Spin down idle hard disks with a rolling spindown budget."""

__version__ = "0.1.0"

from .base import (
    CounterSample,
    Device,
    DeviceProbe,
    DeviceResolutionError,
    Entity,
    FastRunner,
    PowerState,
    ProbeError,
    Process,
    Runner,
    SnapshotParseError,
    SpindownError,
    StandardRunner,
    StatsSnapshot,
    TimeSource,
)
from .config import SpindownConfig
from .controllers import SpindownPolicy
from .environments import CommandProbe, DiskstatsReader, normalize
from .scheduler import SpindownScheduler, create_devices

__all__ = [
    "CommandProbe",
    "CounterSample",
    "Device",
    "DeviceProbe",
    "DeviceResolutionError",
    "DiskstatsReader",
    "Entity",
    "FastRunner",
    "PowerState",
    "ProbeError",
    "Process",
    "Runner",
    "SnapshotParseError",
    "SpindownConfig",
    "SpindownError",
    "SpindownPolicy",
    "SpindownScheduler",
    "StandardRunner",
    "StatsSnapshot",
    "TimeSource",
    "create_devices",
    "normalize",
]

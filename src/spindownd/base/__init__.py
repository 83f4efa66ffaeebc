"""Base classes for the spindownd daemon."""

from spindownd.base.device import Device
from spindownd.base.entity import Entity
from spindownd.base.errors import (
    DeviceResolutionError,
    ProbeError,
    SnapshotParseError,
    SpindownError,
)
from spindownd.base.probe import DeviceProbe, PowerState
from spindownd.base.process import Process
from spindownd.base.runner import FastRunner, Runner, StandardRunner, TimeSource
from spindownd.base.sample import CounterSample, StatsSnapshot

__all__ = [
    "CounterSample",
    "Device",
    "DeviceProbe",
    "DeviceResolutionError",
    "Entity",
    "FastRunner",
    "PowerState",
    "ProbeError",
    "Process",
    "Runner",
    "SnapshotParseError",
    "SpindownError",
    "StandardRunner",
    "StatsSnapshot",
    "TimeSource",
]

"""Interfaces to the host: disk statistics, device names, probe tools."""

from .diskstats import DiskstatsReader, parse_diskstats
from .names import normalize
from .probe import CommandProbe

__all__ = [
    "CommandProbe",
    "DiskstatsReader",
    "normalize",
    "parse_diskstats",
]

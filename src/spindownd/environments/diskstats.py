"""Snapshot reader for the kernel's per-block-device I/O statistics.

Each line of ``/proc/diskstats`` looks like::

    major minor name rd_ios rd_merges rd_sectors rd_ticks
                     wr_ios wr_merges wr_sectors wr_ticks
                     ios_in_progress io_ticks weighted_ticks [...]

Only completed reads (``rd_ios``) and completed writes (``wr_ios``) are
used. Newer kernels append discard and flush columns, which are
accepted and ignored.
"""

import logging
from typing import Iterable

from pydantic import BaseModel, Field

from spindownd.base.errors import SnapshotParseError
from spindownd.base.runner import TimeSource
from spindownd.base.sample import CounterSample, StatsSnapshot

logger = logging.getLogger(__name__)

DISKSTATS_PATH = "/proc/diskstats"

# Offsets into the counters that follow the device name
FIELD_READS_COMPLETED = 0
FIELD_WRITES_COMPLETED = 4
# Every kernel since 2.6.25 reports at least this many counters per line
MIN_COUNTER_FIELDS = 11


class DiskstatsReader(BaseModel):
    """Read a StatsSnapshot from a diskstats-format table.

    The whole table is parsed or nothing is: a single malformed line
    fails the read. If a device name appears twice, the last line wins.
    """

    path: str = Field(
        default=DISKSTATS_PATH,
        description="Location of the diskstats table",
    )

    def read(self) -> StatsSnapshot:
        """Take a snapshot of all devices' counters.

        Raises:
            OSError: If the table cannot be opened or read
            SnapshotParseError: If any line is malformed
        """
        timestamp = TimeSource.now()
        with open(self.path) as f:
            lines = f.readlines()
        return parse_diskstats(lines, timestamp)


def parse_diskstats(lines: Iterable[str], timestamp: int) -> StatsSnapshot:
    """Parse diskstats lines into a snapshot stamped with timestamp."""
    samples: dict[str, CounterSample] = {}
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        sample = _parse_line(line, timestamp, lineno)
        samples[sample.name] = sample
    logger.debug("Read counters for %d block devices", len(samples))
    return StatsSnapshot(timestamp=timestamp, samples=samples)


def _parse_line(line: str, timestamp: int, lineno: int) -> CounterSample:
    parts = line.split()
    if len(parts) < 3 + MIN_COUNTER_FIELDS:
        raise SnapshotParseError(
            f"line {lineno}: expected at least {3 + MIN_COUNTER_FIELDS} "
            f"fields, got {len(parts)}: {line.strip()!r}"
        )
    major, minor, name, *counters = parts
    numbers = [major, minor, *counters]
    if not all(n.isdigit() for n in numbers):
        raise SnapshotParseError(
            f"line {lineno}: non-numeric counter: {line.strip()!r}"
        )
    return CounterSample(
        name=name,
        timestamp=timestamp,
        reads=int(counters[FIELD_READS_COMPLETED]),
        writes=int(counters[FIELD_WRITES_COMPLETED]),
    )

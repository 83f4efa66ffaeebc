"""Process base class for fixed-interval execution.

A Process is anything a Runner can drive: it knows its interval, how
many times it has run, and therefore when it wants to run next.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from pydantic import ConfigDict, Field

from .entity import Entity


class Process(Entity, ABC):
    """Base class for units of work executed on a fixed schedule.

    Execution times are anchored to ``start_time``: the Nth execution is
    due at ``start_time + N * interval_ns``. A slow execution therefore
    shortens the following sleep instead of pushing every later tick
    back, so the schedule never drifts.

    Subclasses implement _execute().
    """

    model_config = ConfigDict(frozen=False)

    interval_ns: int = Field(
        default=1_000_000_000,
        gt=0,
        description="Execution interval in nanoseconds",
    )
    start_time: int = Field(
        default=0,
        description="Anchor time of the execution schedule (nanoseconds)",
    )
    execution_count: int = Field(
        default=0,
        description="Number of completed executions",
    )

    def __init__(self, **data: Any) -> None:
        """Initialize process with logging and execution tracking."""
        super().__init__(**data)
        self._logger = logging.getLogger(
            f"{self.__class__.__module__}."
            f"{self.__class__.__name__}."
            f"{self.name}"
        )

    def execute(self) -> None:
        """Execute this process once.

        Template method that calls _execute() and updates the execution
        count on success. Exceptions propagate and leave the count
        unchanged.
        """
        self._execute()
        self.update_execution_count()

    @abstractmethod
    def _execute(self) -> None:
        """Perform one execution."""

    def get_time(self) -> int:
        """Get current time in nanoseconds.

        When running under a Runner, returns the runner's time source,
        which may be simulated time for testing. Otherwise returns the
        monotonic clock.
        """
        # Import here to avoid circular dependency
        from .runner import TimeSource

        return TimeSource.now()

    def update_execution_count(self) -> None:
        """Record one completed execution."""
        self.execution_count += 1

    def get_next_execution_time(self) -> int:
        """Calculate when the next execution is due.

        Returns:
            Next execution time in nanoseconds
        """
        return self.start_time + (self.execution_count * self.interval_ns)

    def initialize(self) -> None:
        """Reset the schedule so the first execution is due now."""
        self.start_time = self.get_time()
        self.execution_count = 0


def monotonic_ns() -> int:
    """Return the system monotonic clock in nanoseconds."""
    return time.monotonic_ns()

"""Runner classes that drive a Process on its schedule."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

from pydantic import Field

from .entity import Entity
from .process import Process, monotonic_ns


class TimeSource:
    """Thread-local time source discovery for process execution.

    A Runner registers itself for the thread it runs in, so that
    processes and the readers they call see the runner's clock. Under
    FastRunner that clock is simulated.
    """

    _thread_locals = threading.local()

    @classmethod
    def set_current(cls, runner: "Runner") -> None:
        """Set time source (runner) for current thread."""
        cls._thread_locals.runner = runner

    @classmethod
    def get_current(cls) -> "Runner | None":
        """Get time source (runner) for current thread, or None."""
        return getattr(cls._thread_locals, "runner", None)

    @classmethod
    def clear_current(cls) -> None:
        """Clear time source for current thread."""
        if hasattr(cls._thread_locals, "runner"):
            del cls._thread_locals.runner

    @classmethod
    def now(cls) -> int:
        """Current time in nanoseconds from the active runner.

        Falls back to the monotonic clock outside of a runner.
        """
        runner = cls.get_current()
        if runner:
            return runner.get_time()
        return monotonic_ns()


class Runner(Entity, ABC):
    """Base class for executing a process on its schedule.

    After each execution the runner sleeps until the process's next
    due time. If that time has already passed, the configured interval
    cannot be sustained: the runner warns and executes again straight
    away.

    Exceptions raised by the process are not caught here. Anything the
    process did not handle itself is fatal.
    """

    main_process: Process = Field(
        description="The root process to execute"
    )

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        self._logger = logging.getLogger(
            f"{self.__class__.__module__}.{self.__class__.__name__}."
            f"{self.name}"
        )
        self._stop_event = threading.Event()

    @abstractmethod
    def get_time(self) -> int:
        """Get current time in nanoseconds."""

    @abstractmethod
    def _sleep(self, duration_ns: int) -> None:
        """Wait for duration_ns, returning early if a stop is requested."""

    def stop(self) -> None:
        """Request the execution loop to end after the current tick."""
        self._logger.info(f"Stopping runner {self.name}")
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        """Whether stop() has been called."""
        return self._stop_event.is_set()

    def _execute_once(self) -> None:
        """Execute the main process, then wait until it is due again."""
        self._logger.debug(f"Executing {self.main_process.name}")
        self.main_process.execute()

        next_time = self.main_process.get_next_execution_time()
        remaining = next_time - self.get_time()
        if remaining <= 0:
            self._logger.warning(
                "%s is running %.1fs behind schedule, the check interval "
                "of %.1fs cannot be sustained",
                self.main_process.name,
                -remaining / 1_000_000_000,
                self.main_process.interval_ns / 1_000_000_000,
            )
            return
        self._sleep(remaining)


class StandardRunner(Runner):
    """Runner that executes in real time on the monotonic clock.

    run_forever() blocks the calling thread, which is what the daemon
    uses so that signal handlers can call stop(). start() runs the same
    loop in a background thread.
    """

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        self._thread: threading.Thread | None = None
        self._error: BaseException | None = None

    def get_time(self) -> int:
        """Get current monotonic time in nanoseconds."""
        return monotonic_ns()

    def _sleep(self, duration_ns: int) -> None:
        self._stop_event.wait(duration_ns / 1_000_000_000)

    def run_forever(self) -> None:
        """Execute the main process until stop() is called.

        Raises:
            Exception: Whatever the main process raised
        """
        TimeSource.set_current(self)
        self._logger.info(f"Starting runner {self.name}")
        try:
            self.main_process.initialize()
            while not self._stop_event.is_set():
                self._execute_once()
        finally:
            TimeSource.clear_current()
            self._logger.info(f"Runner {self.name} execution loop ended")

    def start(self) -> None:
        """Start run_forever() in a background thread.

        Raises:
            RuntimeError: If runner is already started
        """
        if self._thread and self._thread.is_alive():
            raise RuntimeError(f"Runner {self.name} already started")

        self._stop_event.clear()
        self._error = None
        self._thread = threading.Thread(
            target=self._thread_main,
            name=f"Runner-{self.name}",
            daemon=True,
        )
        self._thread.start()

    def _thread_main(self) -> None:
        try:
            self.run_forever()
        except Exception as e:
            self._logger.exception(f"Runner {self.name} failed")
            self._error = e

    @property
    def error(self) -> BaseException | None:
        """Exception that ended the background thread, if any."""
        return self._error

    def join(self, timeout: float | None = 5.0) -> None:
        """Stop the background thread and wait for it to finish."""
        if not self._thread:
            return
        self.stop()
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            self._logger.warning(
                f"Runner {self.name} thread did not stop within timeout"
            )
        self._thread = None

    def is_running(self) -> bool:
        """Check if the background thread is active."""
        return self._thread is not None and self._thread.is_alive()


class FastRunner(Runner):
    """Test runner that accelerates time.

    Keeps an internal simulation clock and jumps it forward instead of
    sleeping, so hours of daemon behaviour run in milliseconds.
    Processes may call advance() to simulate time spent inside a tick.
    """

    max_duration_ns: int = Field(
        default=30 * 24 * 3600 * 1_000_000_000,
        description="Maximum simulation duration to prevent infinite loops",
    )

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)
        self._simulation_time = 0

    def get_time(self) -> int:
        """Get current simulation time in nanoseconds."""
        return self._simulation_time

    def advance(self, duration_ns: int) -> None:
        """Move simulation time forward by duration_ns."""
        self._simulation_time += duration_ns

    def _sleep(self, duration_ns: int) -> None:
        self.advance(duration_ns)

    def run_for_duration(self, duration_seconds: float) -> None:
        """Run the main process for a span of simulated time.

        Executes every tick due in [now, now + duration), and leaves the
        clock at the next due time after that.
        """
        TimeSource.set_current(self)
        try:
            if self.main_process.execution_count == 0:
                self.main_process.initialize()
            end_time = self._simulation_time + int(
                duration_seconds * 1_000_000_000
            )
            while (
                self.main_process.get_next_execution_time() < end_time
                and not self._stop_event.is_set()
            ):
                if self._simulation_time > self.max_duration_ns:
                    self._logger.warning(
                        "FastRunner exceeded max duration, stopping"
                    )
                    break
                next_time = self.main_process.get_next_execution_time()
                if next_time > self._simulation_time:
                    self._simulation_time = next_time
                self._execute_once()
        finally:
            TimeSource.clear_current()

    def run_ticks(self, count: int) -> None:
        """Run exactly count executions of the main process."""
        TimeSource.set_current(self)
        try:
            if self.main_process.execution_count == 0:
                self.main_process.initialize()
            for _ in range(count):
                next_time = self.main_process.get_next_execution_time()
                if next_time > self._simulation_time:
                    self._simulation_time = next_time
                self._execute_once()
        finally:
            TimeSource.clear_current()

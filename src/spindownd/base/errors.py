"""Exception types raised at the boundaries of the spindown core."""


class SpindownError(Exception):
    """Base class for all spindownd errors."""


class DeviceResolutionError(SpindownError):
    """A device identifier could not be resolved to a usable disk.

    Always fatal at startup.
    """


class ProbeError(SpindownError):
    """An external probe command returned an unrecognized outcome.

    Scoped to a single device and a single tick: the scheduler logs it
    and moves on to the next device.
    """

    def __init__(
        self, device: str, message: str, returncode: int | None = None
    ) -> None:
        super().__init__(message)
        self.device = device
        self.returncode = returncode


class SnapshotParseError(SpindownError, ValueError):
    """The disk statistics table contained a line of unexpected shape."""

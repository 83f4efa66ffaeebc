"""Device probe interface: query power state, command spindown."""

import enum
from abc import ABC, abstractmethod


class PowerState(enum.Enum):
    """Power state reported by a standby query."""

    ACTIVE = "active"
    STANDBY = "standby"


class DeviceProbe(ABC):
    """Capability to inspect and control a disk's power state.

    Both calls are synchronous and may block; a hung call stalls the
    whole tick. Implementations raise ProbeError for any outcome they
    do not recognize.
    """

    @abstractmethod
    def query_standby(self, name: str) -> PowerState:
        """Return the current power state of the named disk.

        Raises:
            ProbeError: If the query result is not recognized
        """

    @abstractmethod
    def spindown(self, name: str) -> None:
        """Command the named disk into standby.

        Raises:
            ProbeError: If the command fails
        """

"""Identity shared by devices, processes and runners."""

from typing import Any
from uuid import NAMESPACE_URL, UUID, getnode, uuid4, uuid5

from pydantic import BaseModel, ConfigDict, Field


class Entity(BaseModel):
    """Something spindownd refers to by name in its log output.

    ``uuid`` is random unless a ``unique_id`` is passed. Disks use their
    device node as unique_id, so a disk keeps its UUID across restarts
    of the daemon on the same host.
    """

    model_config = ConfigDict(frozen=True)

    uuid: UUID = Field(
        default_factory=uuid4,
        description="Identifier, stable for hardware-backed entities",
    )
    name: str = Field(min_length=1, description="Name used in log messages")

    def __init__(self, unique_id: str | None = None, **data: Any) -> None:
        if unique_id is not None:
            data.setdefault("uuid", stable_uuid(unique_id))
        super().__init__(**data)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, uuid={self.uuid})"


def stable_uuid(unique_id: str, node: int | None = None) -> UUID:
    """Derive a UUID from this host's hardware address and unique_id.

    Args:
        unique_id: Identifier of the hardware, e.g. ``/dev/sda``
        node: Hardware address to use instead of this host's
    """
    host = getnode() if node is None else node
    return uuid5(NAMESPACE_URL, f"spindownd://{host:012x}/{unique_id.lstrip('/')}")

"""Resolution of administrator-supplied device identifiers.

Accepts a short kernel name (``sda``), a device node (``/dev/sda``) or
any symlink to one (``/dev/disk/by-id/ata-...``), and returns the short
name the kernel uses in ``/proc/diskstats``.
"""

import os
import re
import stat

from spindownd.base.errors import DeviceResolutionError

DEVICE_DIR = "/dev"


def normalize(identifier: str, dev_dir: str = DEVICE_DIR) -> str:
    """Resolve identifier to a canonical whole-disk device name.

    The identifier is tried as a path first, relative to the current
    directory if not absolute. Only if no such path exists is it looked
    up inside dev_dir. So a file called ``sda`` in the working
    directory wins over ``/dev/sda``.

    Symlinks are followed to their final target before validating,
    which lets stable ``by-id`` aliases map to the kernel name.

    Raises:
        DeviceResolutionError: If the path does not exist, is not a
            block device, or is not a whole disk directly in dev_dir
    """
    if not identifier:
        raise DeviceResolutionError("empty device name")

    if os.path.exists(identifier):
        candidate = identifier
    else:
        candidate = os.path.join(dev_dir, identifier)
        if not os.path.exists(candidate):
            raise DeviceResolutionError(
                f"{identifier}: no such device "
                f"(tried {identifier} and {candidate})"
            )

    resolved = os.path.realpath(candidate)
    if not _is_block_device(resolved):
        raise DeviceResolutionError(
            f"{identifier}: {resolved} is not a block device"
        )

    pattern = re.compile(
        re.escape(os.path.realpath(dev_dir)) + r"/(?P<name>[a-z]+)"
    )
    match = pattern.fullmatch(resolved)
    if match is None:
        raise DeviceResolutionError(
            f"{identifier}: {resolved} is not a whole disk "
            f"(expected {dev_dir}/ followed by lowercase letters)"
        )
    return match.group("name")


def _is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False

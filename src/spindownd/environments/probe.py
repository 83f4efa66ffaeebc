"""Device probe backed by external command-line tools.

The standby check defaults to ``smartctl -i -n standby``, which exits
with status 0 when the disk is spinning and 2 when it is in standby
(and therefore skips the check rather than waking the disk).

smartctl also exits with status 2 when the device cannot be opened,
for instance because of missing permissions. The two cases can only
be told apart by reading smartctl's output, which is not done here:
exit status 2 is always taken to mean standby.

Spindown defaults to ``hdparm -y``, where any non-zero status is a
failure.
"""

import logging
import shutil
import subprocess
from typing import Sequence

from spindownd.base.errors import ProbeError
from spindownd.base.probe import DeviceProbe, PowerState

logger = logging.getLogger(__name__)

DEFAULT_STANDBY_COMMAND = ("smartctl", "-i", "-n", "standby", "{device}")
DEFAULT_SPINDOWN_COMMAND = ("hdparm", "-y", "{device}")

STANDBY_EXIT_CODES = {
    0: PowerState.ACTIVE,
    2: PowerState.STANDBY,
}


class CommandProbe(DeviceProbe):
    """Probe that runs one external command per operation.

    Commands are argument templates; ``{device}`` is replaced with the
    device node path, e.g. ``/dev/sda``. Calls block until the command
    exits unless a timeout is given, in which case a command that runs
    too long is killed and reported as a ProbeError.
    """

    def __init__(
        self,
        standby_command: Sequence[str] = DEFAULT_STANDBY_COMMAND,
        spindown_command: Sequence[str] = DEFAULT_SPINDOWN_COMMAND,
        timeout: float | None = None,
        dev_dir: str = "/dev",
    ) -> None:
        self.standby_command = tuple(standby_command)
        self.spindown_command = tuple(spindown_command)
        self.timeout = timeout
        self.dev_dir = dev_dir

    def query_standby(self, name: str) -> PowerState:
        """Run the standby check and map its exit status."""
        proc = self._run(self.standby_command, name)
        state = STANDBY_EXIT_CODES.get(proc.returncode)
        if state is None:
            raise ProbeError(
                name,
                f"standby check exited with status {proc.returncode}"
                + _stderr_suffix(proc),
                returncode=proc.returncode,
            )
        logger.debug("%s power state: %s", name, state.value)
        return state

    def spindown(self, name: str) -> None:
        """Run the spindown command."""
        proc = self._run(self.spindown_command, name)
        if proc.returncode != 0:
            raise ProbeError(
                name,
                f"spindown command exited with status {proc.returncode}"
                + _stderr_suffix(proc),
                returncode=proc.returncode,
            )

    def missing_tools(self) -> list[str]:
        """Return the configured executables that are not on PATH."""
        return [
            cmd[0]
            for cmd in (self.standby_command, self.spindown_command)
            if shutil.which(cmd[0]) is None
        ]

    def _run(
        self, template: Sequence[str], name: str
    ) -> "subprocess.CompletedProcess[str]":
        device = f"{self.dev_dir}/{name}"
        cmd = [arg.replace("{device}", device) for arg in template]
        logger.debug("Running %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ProbeError(
                name, f"{cmd[0]} did not finish within {e.timeout}s"
            ) from e
        except OSError as e:
            raise ProbeError(name, f"could not run {cmd[0]}: {e}") from e


def _stderr_suffix(proc: "subprocess.CompletedProcess[str]") -> str:
    stderr = (proc.stderr or "").strip()
    if not stderr:
        return ""
    return f": {stderr.splitlines()[-1]}"

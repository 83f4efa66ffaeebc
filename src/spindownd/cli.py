"""Command line entry point."""

import argparse
import logging
import shlex
import signal
import sys
from typing import Sequence

from pydantic import ValidationError

from spindownd import __version__
from spindownd.base.errors import DeviceResolutionError
from spindownd.base.runner import StandardRunner
from spindownd.config import SpindownConfig
from spindownd.environments.diskstats import DiskstatsReader
from spindownd.scheduler import SpindownScheduler, create_devices

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_DEVICE = 2
EXIT_INVALID_OPTION = 3
EXIT_UNEXPECTED = 101

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("spindownd")


class ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with EXIT_USAGE on usage errors."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> ArgumentParser:
    """Create the command line parser.

    Numeric options are kept as strings and validated by
    SpindownConfig, so that out-of-range and malformed values share
    one exit code.
    """
    parser = ArgumentParser(
        prog="spindownd",
        description="Spin down idle hard disks, with a limit on how "
        "often each disk may be spun down.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-l",
        "--spindown-limit",
        default="6",
        help="Maximum number of spindowns per disk per limit period "
        "(at least 1)",
    )
    parser.add_argument(
        "-i",
        "--check-interval",
        default="180",
        help="Seconds between checks (at least 1)",
    )
    parser.add_argument(
        "-t",
        "--spindown-time",
        default="1800",
        help="Idle seconds before a disk is spun down "
        "(at least the check interval)",
    )
    parser.add_argument(
        "-p",
        "--spindown-limit-period",
        default="86400",
        help="Seconds after which spindown counts are reset "
        "(at least the spindown time)",
    )
    parser.add_argument(
        "--standby-command",
        default=None,
        help="Command that exits 0 if the disk is active and 2 if it is "
        "in standby; {device} is replaced by the device path "
        "(default: smartctl -i -n standby {device})",
    )
    parser.add_argument(
        "--spindown-command",
        default=None,
        help="Command that spins the disk down; {device} is replaced by "
        "the device path (default: hdparm -y {device})",
    )
    parser.add_argument(
        "--command-timeout",
        default=None,
        help="Seconds after which a hung probe command is killed "
        "(default: wait forever)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every check, not just state changes",
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "devices",
        metavar="DEVICE",
        nargs="+",
        help="Disk to monitor: a name (sda), a device path (/dev/sda), "
        "or a symlink to one (/dev/disk/by-id/...)",
    )
    return parser


def setup_logging(verbose: bool) -> None:
    """Send log records to stderr, at DEBUG level if verbose."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def parse_config(args: argparse.Namespace) -> SpindownConfig:
    """Build a SpindownConfig from parsed arguments.

    Raises:
        ValidationError: If an option value is invalid
    """
    data: dict = {
        "devices": args.devices,
        "spindown_limit": args.spindown_limit,
        "check_interval": args.check_interval,
        "spindown_time": args.spindown_time,
        "spindown_limit_period": args.spindown_limit_period,
        "verbose": args.verbose,
    }
    if args.standby_command is not None:
        data["standby_command"] = shlex.split(args.standby_command)
    if args.spindown_command is not None:
        data["spindown_command"] = shlex.split(args.spindown_command)
    if args.command_timeout is not None:
        data["command_timeout"] = args.command_timeout
    return SpindownConfig.model_validate(data)


def run(config: SpindownConfig, reader: DiskstatsReader | None = None) -> None:
    """Resolve the devices and run the scheduler until stopped.

    Raises:
        DeviceResolutionError: If a device cannot be resolved
    """
    reader = reader or DiskstatsReader()
    probe = config.build_probe()
    for tool in probe.missing_tools():
        logger.warning("%s not found in PATH", tool)

    devices = create_devices(config.devices, reader.read(), probe)
    logger.info(
        "Spinning down after %ds idle, checking every %ds, at most %d "
        "spindowns per disk every %ds",
        config.spindown_time,
        config.check_interval,
        config.spindown_limit,
        config.spindown_limit_period,
    )
    for device in devices:
        logger.info(
            "  %s: reads=%d writes=%d %s",
            device.path,
            device.last_sample.reads,
            device.last_sample.writes,
            "standby" if device.standby else "active",
        )

    scheduler = SpindownScheduler(
        name="scheduler",
        interval_ns=config.check_interval_ns,
        devices=devices,
        reader=reader,
        probe=probe,
        policy=config.build_policy(),
        budget_period_ns=config.spindown_limit_period_ns,
    )
    runner = StandardRunner(name="spindownd", main_process=scheduler)

    def handle_signal(signum: int, frame: object) -> None:
        logger.info("Caught signal %d", signum)
        runner.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    runner.run_forever()
    logger.info("Spindowns since last budget reset: %s", scheduler.summary())


def main(argv: Sequence[str] | None = None) -> int:
    """Run the daemon and return its exit status."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = parse_config(args)
    except ValidationError as e:
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            logger.error(
                "Invalid option %s: %s",
                location.replace("_", "-") or "value",
                error["msg"],
            )
        return EXIT_INVALID_OPTION

    try:
        run(config)
    except DeviceResolutionError as e:
        logger.error("%s", e)
        return EXIT_DEVICE
    except Exception:
        logger.exception("Unexpected failure, exiting")
        return EXIT_UNEXPECTED
    return EXIT_OK

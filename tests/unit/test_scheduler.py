"""Tests for SpindownScheduler and device creation."""

import logging

import pytest

from spindownd import (
    CounterSample,
    Device,
    DeviceResolutionError,
    FastRunner,
    PowerState,
    SpindownPolicy,
    SpindownScheduler,
    create_devices,
)

from .mocks import FakeProbe, FakeReader

SECOND = 1_000_000_000
INTERVAL = 180 * SECOND
IDLE = 1800 * SECOND
PERIOD = 86400 * SECOND
TICKS_TO_IDLE = IDLE // INTERVAL  # 10


def build(
    names=("sda",),
    spindown_limit=6,
    spindown_time_ns=IDLE,
    interval_ns=INTERVAL,
    budget_period_ns=PERIOD,
):
    reader = FakeReader()
    for name in names:
        reader.set_counters(name, 100, 500)
    probe = FakeProbe()
    devices = [
        Device(
            name=name,
            last_sample=CounterSample(
                name=name, timestamp=0, reads=100, writes=500
            ),
        )
        for name in names
    ]
    scheduler = SpindownScheduler(
        name="scheduler",
        interval_ns=interval_ns,
        devices=devices,
        reader=reader,
        probe=probe,
        policy=SpindownPolicy(
            spindown_limit=spindown_limit, spindown_time_ns=spindown_time_ns
        ),
        budget_period_ns=budget_period_ns,
    )
    runner = FastRunner(name="runner", main_process=scheduler)
    return scheduler, reader, probe, runner


class TestIdleSpindown:
    """Test the end-to-end idle spindown path."""

    def test_idle_device_spun_down_once(self):
        """Test a disk idle for the spindown time gets one spindown."""
        scheduler, reader, probe, runner = build()
        device = scheduler.devices[0]

        # Ticks at 0, 180s, ..., 1620s: not idle long enough yet
        runner.run_ticks(TICKS_TO_IDLE)
        assert probe.spindowns == []

        # Tick at 1800s
        runner.run_ticks(1)
        assert probe.spindowns == ["sda"]
        assert device.spindown_count == 1
        assert device.standby

        # Disk stays in standby, no further commands
        runner.run_ticks(5)
        assert probe.spindowns == ["sda"]

    def test_io_postpones_spindown(self):
        scheduler, reader, probe, runner = build()

        runner.run_ticks(TICKS_TO_IDLE - 1)
        reader.add_io("sda")
        runner.run_ticks(TICKS_TO_IDLE)
        assert probe.spindowns == []

        runner.run_ticks(1)
        assert probe.spindowns == ["sda"]

    def test_counter_reset_counts_as_activity(self):
        """Test counters dropping to zero (replug) postpone spindown."""
        scheduler, reader, probe, runner = build()

        runner.run_ticks(TICKS_TO_IDLE - 1)
        reader.set_counters("sda", 0, 0)
        runner.run_ticks(1)
        assert scheduler.devices[0].last_activity_time == (
            (TICKS_TO_IDLE - 1) * INTERVAL
        )

        runner.run_ticks(TICKS_TO_IDLE - 1)
        assert probe.spindowns == []


class TestSpinUp:
    """Test wake-up classification and the re-spindown hold-back."""

    def _spun_down(self):
        scheduler, reader, probe, runner = build()
        runner.run_ticks(TICKS_TO_IDLE + 1)
        assert probe.spindowns == ["sda"]
        return scheduler, reader, probe, runner

    def test_spin_up_with_io(self, caplog):
        """Test a wake-up with I/O logs info only."""
        scheduler, reader, probe, runner = self._spun_down()
        probe.set_state("sda", PowerState.ACTIVE)
        reader.add_io("sda", reads=10)

        with caplog.at_level(logging.INFO):
            runner.run_ticks(1)

        device_records = [
            r for r in caplog.records if r.name.endswith("Device.sda")
        ]
        assert [r.getMessage() for r in device_records] == ["Spun up due to I/O"]
        assert all(r.levelno < logging.WARNING for r in caplog.records)
        assert probe.spindowns == ["sda"]

    def test_spin_up_without_io_not_spun_down_same_tick(self, caplog):
        """Test an unexplained wake-up warns and is left alone this tick."""
        scheduler, reader, probe, runner = self._spun_down()
        probe.set_state("sda", PowerState.ACTIVE)

        with caplog.at_level(logging.WARNING):
            runner.run_ticks(1)

        assert "without I/O" in caplog.text
        assert probe.spindowns == ["sda"]
        assert not scheduler.devices[0].standby

        # Still idle on the next tick, so now it is spun down again
        runner.run_ticks(1)
        assert probe.spindowns == ["sda", "sda"]

    def test_io_while_believed_standby(self, caplog):
        scheduler, reader, probe, runner = self._spun_down()
        reader.add_io("sda")

        with caplog.at_level(logging.WARNING):
            runner.run_ticks(1)

        assert "outside spindownd" in caplog.text


class TestSpindownBudget:
    """Test the spindown limit and its periodic reset."""

    def _wake(self, probe, reader):
        # An external wake-up without I/O, so the disk stays idle
        probe.set_state("sda", PowerState.ACTIVE)

    def test_limit_stops_spindowns(self, caplog):
        """Test no probe call is made after the limit is reached."""
        scheduler, reader, probe, runner = build(spindown_limit=2)
        device = scheduler.devices[0]

        runner.run_ticks(TICKS_TO_IDLE + 1)
        assert probe.spindown_count("sda") == 1

        self._wake(probe, reader)
        with caplog.at_level(logging.WARNING):
            runner.run_ticks(2)
        assert probe.spindown_count("sda") == 2
        assert device.spindown_count == 2
        assert "reached its limit of 2 spindowns" in caplog.text

        self._wake(probe, reader)
        runner.run_ticks(20)
        assert probe.spindown_count("sda") == 2
        assert device.spindown_count == 2
        assert not device.standby

    def test_budget_reset_restores_spindowns(self, caplog):
        """Test counts return to zero after the limit period."""
        scheduler, reader, probe, runner = build(
            spindown_limit=1, budget_period_ns=3600 * SECOND
        )
        device = scheduler.devices[0]

        runner.run_ticks(TICKS_TO_IDLE + 1)
        assert device.spindown_count == 1
        self._wake(probe, reader)

        # Budget exhausted until 3600s
        with caplog.at_level(logging.INFO):
            runner.run_for_duration(3600 - runner.get_time() / SECOND)
        assert probe.spindown_count("sda") == 1
        assert device.spindown_count == 1

        with caplog.at_level(logging.INFO):
            runner.run_ticks(1)
        assert "Spindowns since last budget reset: sda=1" in caplog.text
        assert scheduler.budget_reset_time == 3600 * SECOND
        # The reset happens before the device update, so it spins down again
        assert probe.spindown_count("sda") == 2
        assert device.spindown_count == 1

    def test_reset_anchor_advances_by_period(self):
        """Test the anchor moves by exactly one period, not to now."""
        period = 1000 * SECOND
        scheduler, reader, probe, runner = build(
            interval_ns=300 * SECOND,
            spindown_time_ns=300 * SECOND,
            budget_period_ns=period,
        )
        for device in scheduler.devices:
            device.spindown_count = 1

        # Ticks at 0, 300, 600, 900, 1200
        runner.run_ticks(5)

        assert scheduler.budget_reset_time == period
        assert runner.get_time() != period

        # Ticks at 1500, 1800, 2100
        runner.run_ticks(3)
        assert scheduler.budget_reset_time == 2 * period

    def test_reset_clears_every_device(self):
        scheduler, reader, probe, runner = build(
            names=("sda", "sdb", "sdc"), budget_period_ns=IDLE
        )
        runner.run_ticks(1)
        for count, device in enumerate(scheduler.devices):
            device.spindown_count = count
        probe.set_state("sda", PowerState.STANDBY)
        probe.set_state("sdb", PowerState.STANDBY)
        probe.set_state("sdc", PowerState.STANDBY)

        runner.run_ticks(TICKS_TO_IDLE)

        assert [d.spindown_count for d in scheduler.devices] == [0, 0, 0]


class TestOnlineOffline:
    """Test devices disappearing from and reappearing in the snapshot."""

    def test_offline_and_online_reported_once(self, caplog):
        scheduler, reader, probe, runner = build()
        device = scheduler.devices[0]
        runner.run_ticks(1)

        reader.unplug("sda")
        with caplog.at_level(logging.INFO):
            runner.run_ticks(4)
        assert not device.online
        assert caplog.text.count("Went offline") == 1
        # Offline devices are not probed
        assert probe.queries == ["sda"]

        reader.set_counters("sda", 0, 0)
        with caplog.at_level(logging.INFO):
            runner.run_ticks(3)
        assert device.online
        assert caplog.text.count("Came back online") == 1
        assert device.last_sample.counters() == (0, 0)

    def test_no_retroactive_activity(self):
        """Test the returning sample is a baseline, not I/O."""
        scheduler, reader, probe, runner = build()
        device = scheduler.devices[0]
        runner.run_ticks(1)
        reader.unplug("sda")
        runner.run_ticks(2)

        reader.set_counters("sda", 7, 7)
        runner.run_ticks(1)

        assert device.last_activity_time == 0

    def test_offline_device_never_removed(self):
        scheduler, reader, probe, runner = build(names=("sda", "sdb"))
        reader.unplug("sdb")

        runner.run_ticks(3)

        assert [d.name for d in scheduler.devices] == ["sda", "sdb"]
        assert scheduler.get_device("sdb") is not None
        assert scheduler.get_device("sdz") is None


class TestErrorIsolation:
    """Test probe failures stay scoped to one device and one tick."""

    def test_probe_error_does_not_stop_other_devices(self, caplog):
        scheduler, reader, probe, runner = build(names=("sda", "sdb"))
        probe.failing_queries.add("sda")

        with caplog.at_level(logging.ERROR):
            runner.run_ticks(TICKS_TO_IDLE + 1)

        assert probe.spindowns == ["sdb"]
        assert "Device sda: standby check exited with status 1" in caplog.text

    def test_failed_spindown_counts_and_continues(self):
        scheduler, reader, probe, runner = build(
            names=("sda", "sdb"), spindown_limit=2
        )
        probe.failing_spindowns.add("sda")

        runner.run_ticks(TICKS_TO_IDLE + 3)

        sda, sdb = scheduler.devices
        assert probe.spindown_count("sda") == 2
        assert sda.spindown_count == 2
        assert not sda.standby
        assert sdb.standby

    def test_snapshot_failure_is_fatal(self):
        scheduler, reader, probe, runner = build()
        reader.fail_with = "Permission denied"

        with pytest.raises(OSError):
            runner.run_ticks(1)


class TestCreateDevices:
    """Test startup resolution of the administrator's device list."""

    @pytest.fixture(autouse=True)
    def resolve_directly(self, monkeypatch):
        """Treat every identifier as already canonical."""
        monkeypatch.setattr(
            "spindownd.scheduler.normalize",
            lambda identifier, dev_dir="/dev": identifier.rsplit("/", 1)[-1],
        )

    def test_devices_created_in_order(self, make_snapshot):
        snapshot = make_snapshot({"sda": (1, 2), "sdb": (3, 4)}, timestamp=5)

        devices = create_devices(["sdb", "sda"], snapshot)

        assert [d.name for d in devices] == ["sdb", "sda"]
        assert devices[0].last_sample.counters() == (3, 4)
        assert devices[0].last_activity_time == 5

    def test_duplicates_collapsed(self, make_snapshot):
        snapshot = make_snapshot({"sda": (1, 2)})

        devices = create_devices(["sda", "/dev/sda"], snapshot)

        assert len(devices) == 1

    def test_missing_from_snapshot(self, make_snapshot):
        snapshot = make_snapshot({"sda": (1, 2)})

        with pytest.raises(DeviceResolutionError, match="no entry"):
            create_devices(["sda", "sdb"], snapshot)

    def test_initial_power_state(self, make_snapshot):
        snapshot = make_snapshot({"sda": (1, 2), "sdb": (3, 4)})
        probe = FakeProbe()
        probe.set_state("sda", PowerState.STANDBY)

        devices = create_devices(["sda", "sdb"], snapshot, probe)

        assert [d.standby for d in devices] == [True, False]

    def test_initial_query_failure_assumes_active(self, make_snapshot):
        snapshot = make_snapshot({"sda": (1, 2)})
        probe = FakeProbe()
        probe.failing_queries.add("sda")

        devices = create_devices(["sda"], snapshot, probe)

        assert not devices[0].standby


def test_resolution_error_propagates(make_snapshot, tmp_path):
    """Test an unresolvable identifier fails device creation."""
    with pytest.raises(DeviceResolutionError):
        create_devices(
            ["definitely-not-a-disk"],
            make_snapshot({}),
            dev_dir=str(tmp_path),
        )

import pytest

from spindownd import CounterSample, StatsSnapshot


@pytest.fixture
def sample_name() -> str:
    """Provides a consistent device name for testing."""
    return "sda"


@pytest.fixture
def make_sample():
    """Factory for CounterSamples with sensible defaults."""

    def _make(
        name: str = "sda", reads: int = 100, writes: int = 50, timestamp: int = 0
    ) -> CounterSample:
        return CounterSample(
            name=name, timestamp=timestamp, reads=reads, writes=writes
        )

    return _make


@pytest.fixture
def make_snapshot(make_sample):
    """Factory for StatsSnapshots from {name: (reads, writes)}."""

    def _make(
        counters: dict[str, tuple[int, int]], timestamp: int = 0
    ) -> StatsSnapshot:
        return StatsSnapshot(
            timestamp=timestamp,
            samples={
                name: make_sample(name, reads, writes, timestamp)
                for name, (reads, writes) in counters.items()
            },
        )

    return _make


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow running")

"""
Startup initialization: exponential backoff, bounded attempts, readiness flag.
"""
import pytest

from checkin_tracker.core.errors import StorageUnavailableError
from checkin_tracker.storage import SQLiteCheckinStore


class _Clock:
    def __init__(self):
        self.delays = []

    def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)


def _flaky(store, failures: int):
    """Make the first `failures` schema attempts raise OSError, then run normally."""
    real = store._initialize_schema
    calls = {"n": 0}

    def attempt():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise OSError(f"volume not mounted (attempt {calls['n']})")
        real()

    store._initialize_schema = attempt
    return calls


class TestBackoff:
    def test_recovers_after_transient_failures(self, db_path):
        clock = _Clock()
        store = SQLiteCheckinStore(
            path=db_path, max_init_attempts=5, init_base_delay=1.0, sleep=clock.sleep
        )
        calls = _flaky(store, failures=2)

        store.initialize()
        try:
            assert store.is_ready
            assert calls["n"] == 3
            assert clock.delays == [1.0, 2.0]
        finally:
            store.close()

    def test_gives_up_after_max_attempts(self, db_path):
        clock = _Clock()
        store = SQLiteCheckinStore(
            path=db_path, max_init_attempts=4, init_base_delay=0.5, sleep=clock.sleep
        )
        calls = _flaky(store, failures=100)

        with pytest.raises(StorageUnavailableError) as exc_info:
            store.initialize()

        assert calls["n"] == 4
        assert clock.delays == [0.5, 1.0, 2.0]
        assert not store.is_ready
        assert "4 attempts" in exc_info.value.message
        assert "volume not mounted" in exc_info.value.details["reason"]

    def test_default_schedule_doubles_from_one_second(self, db_path):
        clock = _Clock()
        store = SQLiteCheckinStore(path=db_path, sleep=clock.sleep)
        _flaky(store, failures=100)

        with pytest.raises(StorageUnavailableError):
            store.initialize()

        assert clock.delays == [1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 64.0, 128.0, 256.0]

    def test_no_sleep_when_first_attempt_succeeds(self, db_path):
        clock = _Clock()
        store = SQLiteCheckinStore(path=db_path, sleep=clock.sleep)
        store.initialize()
        try:
            assert clock.delays == []
        finally:
            store.close()

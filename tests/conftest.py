"""
Shared pytest fixtures.

Each test gets a fresh SQLite file in its own tmp_path, so no SQL Server
(and no shared state between tests) is required.
"""
import uuid

import pytest
from fastapi.testclient import TestClient

from checkin_tracker.main import app
from checkin_tracker.storage import SQLiteCheckinStore


def _no_sleep(seconds: float) -> None:
    pass


@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / "data" / "checkin.db")


@pytest.fixture()
def store(db_path):
    s = SQLiteCheckinStore(
        path=db_path,
        busy_timeout_ms=200,
        max_init_attempts=1,
        sleep=_no_sleep,
    )
    s.initialize()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def client(store):
    app.state.store = store
    with TestClient(app) as c:
        yield c
    app.state.store = None


@pytest.fixture()
def user_id() -> str:
    return str(uuid.uuid4())


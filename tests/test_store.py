"""
Store contract tests against the embedded SQLite backend.

Covers:
- upsert → get_one round trip, overwrite keeps one row (and id/created_at)
- list_by_owner ordering and owner isolation
- bulk_replace: replaces everything, empty list deletes, duplicate date
  aborts with prior data intact
- delete_all_for_owner counts, 0 for unknown owners
- initialize: idempotent, creates the directory, write probe leaves no rows
- error translation: busy file lock → StorageBusyError, closed store → unavailable
"""
import os
import sqlite3

import pytest
from sqlalchemy import event, text

from checkin_tracker.core.errors import (
    ConstraintViolationError,
    StorageBusyError,
    StorageUnavailableError,
)
from checkin_tracker.storage import CheckinRow, Ratings, SQLiteCheckinStore


def _ratings(value: int = 5, **overrides) -> Ratings:
    fields = dict(overall=value, wellbeing=value, growth=value, relationships=value, impact=value)
    fields.update(overrides)
    return Ratings(**fields)


def _row(day: str, value: int = 5) -> CheckinRow:
    return CheckinRow(date=day, ratings=_ratings(value))


# ---------------------------------------------------------------------------
# Reads and upsert
# ---------------------------------------------------------------------------

class TestUpsert:
    def test_upsert_then_get_one_returns_same_ratings(self, store, user_id):
        r = _ratings(overall=3, wellbeing=4, growth=5, relationships=6, impact=7)
        saved = store.upsert(user_id, "2025-03-14", r)

        got = store.get_one(user_id, "2025-03-14")
        assert got is not None
        assert got.ratings == r
        assert got.owner_id == user_id
        assert got.date == "2025-03-14"
        assert got.id == saved.id

    def test_second_upsert_overwrites_single_row(self, store, user_id):
        store.upsert(user_id, "2025-01-01", _ratings(5))
        store.upsert(user_id, "2025-01-01", _ratings(5, overall=8))

        got = store.get_one(user_id, "2025-01-01")
        assert got.overall == 8
        assert got.wellbeing == 5
        assert len(store.list_by_owner(user_id)) == 1

    def test_overwrite_keeps_id_and_created_at(self, store, user_id):
        first = store.upsert(user_id, "2025-01-01", _ratings(2))
        second = store.upsert(user_id, "2025-01-01", _ratings(9))
        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.created_at is not None

    @pytest.mark.parametrize("value", [0, 11, -4])
    def test_out_of_range_rating_rejected(self, store, user_id, value):
        with pytest.raises(ConstraintViolationError):
            store.upsert(user_id, "2025-01-01", _ratings(5, growth=value))
        assert store.get_one(user_id, "2025-01-01") is None

    def test_out_of_range_overwrite_keeps_old_ratings(self, store, user_id):
        store.upsert(user_id, "2025-01-01", _ratings(5))
        with pytest.raises(ConstraintViolationError):
            store.upsert(user_id, "2025-01-01", _ratings(5, overall=11))
        assert store.get_one(user_id, "2025-01-01").overall == 5

    def test_get_one_missing_returns_none(self, store, user_id):
        assert store.get_one(user_id, "2025-01-01") is None

    def test_list_unknown_owner_is_empty(self, store, user_id):
        assert store.list_by_owner(user_id) == []


class TestListOrdering:
    def test_sorted_ascending_regardless_of_insert_order(self, store, user_id):
        for day in ["2025-03-01", "2024-12-31", "2025-01-15", "2025-01-02"]:
            store.upsert(user_id, day, _ratings())
        dates = [r.date for r in store.list_by_owner(user_id)]
        assert dates == ["2024-12-31", "2025-01-02", "2025-01-15", "2025-03-01"]

    def test_owners_are_isolated(self, store):
        store.upsert("alice", "2025-01-01", _ratings(1))
        store.upsert("bob", "2025-01-01", _ratings(9))
        assert [r.overall for r in store.list_by_owner("alice")] == [1]
        assert [r.overall for r in store.list_by_owner("bob")] == [9]


# ---------------------------------------------------------------------------
# Bulk replace
# ---------------------------------------------------------------------------

class TestBulkReplace:
    def test_replaces_all_existing_rows(self, store, user_id):
        for day in range(1, 6):
            store.upsert(user_id, f"2024-06-0{day}", _ratings(3))

        result = store.bulk_replace(user_id, [_row("2025-01-01", 7), _row("2025-01-02", 8)])

        assert result.count == 2
        records = store.list_by_owner(user_id)
        assert [r.date for r in records] == ["2025-01-01", "2025-01-02"]
        assert [r.overall for r in records] == [7, 8]

    def test_empty_rows_delete_everything(self, store, user_id):
        store.upsert(user_id, "2025-01-01", _ratings())
        result = store.bulk_replace(user_id, [])
        assert result.count == 0
        assert store.list_by_owner(user_id) == []

    def test_duplicate_date_leaves_prior_data_intact(self, store, user_id):
        before = [
            store.upsert(user_id, "2024-01-01", _ratings(2)),
            store.upsert(user_id, "2024-01-02", _ratings(3)),
        ]

        with pytest.raises(ConstraintViolationError) as exc_info:
            store.bulk_replace(user_id, [_row("2025-05-05", 9), _row("2025-05-05", 10)])

        assert exc_info.value.details["user_id"] == user_id
        assert store.list_by_owner(user_id) == before

    def test_out_of_range_row_rolls_back(self, store, user_id):
        before = [store.upsert(user_id, "2024-01-01", _ratings(2))]
        with pytest.raises(ConstraintViolationError):
            store.bulk_replace(user_id, [_row("2025-01-01", 5), _row("2025-01-02", 0)])
        assert store.list_by_owner(user_id) == before

    def test_other_owners_untouched(self, store, user_id):
        store.upsert("someone-else", "2025-01-01", _ratings(4))
        store.bulk_replace(user_id, [_row("2025-01-01", 6)])
        assert len(store.list_by_owner("someone-else")) == 1

    def test_new_rows_get_fresh_ids(self, store, user_id):
        store.bulk_replace(user_id, [_row("2025-01-01"), _row("2025-01-02")])
        ids = {r.id for r in store.list_by_owner(user_id)}
        assert len(ids) == 2


class TestDeleteAll:
    def test_returns_count_removed(self, store, user_id):
        store.bulk_replace(user_id, [_row("2025-01-01"), _row("2025-01-02"), _row("2025-01-03")])
        assert store.delete_all_for_owner(user_id).count == 3
        assert store.list_by_owner(user_id) == []

    def test_unknown_owner_returns_zero(self, store, user_id):
        assert store.delete_all_for_owner(user_id).count == 0


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

class TestInitialize:
    def test_creates_missing_directory(self, db_path):
        s = SQLiteCheckinStore(path=db_path, max_init_attempts=1)
        assert not os.path.isdir(os.path.dirname(db_path))
        s.initialize()
        try:
            assert os.path.isfile(db_path)
            assert s.is_ready
        finally:
            s.close()

    def test_initialize_twice_keeps_data(self, store, user_id):
        store.upsert(user_id, "2025-01-01", _ratings(6))
        store.initialize()
        assert store.get_one(user_id, "2025-01-01").overall == 6

    def test_reopen_existing_file(self, store, db_path, user_id):
        store.upsert(user_id, "2025-01-01", _ratings(6))
        store.close()

        reopened = SQLiteCheckinStore(path=db_path, max_init_attempts=1)
        reopened.initialize()
        try:
            assert reopened.get_one(user_id, "2025-01-01").overall == 6
        finally:
            reopened.close()

    def test_write_probe_is_cleaned_up(self, store):
        with store._engine.connect() as conn:
            assert conn.execute(text("SELECT COUNT(*) FROM checkins")).scalar() == 0

    def test_restart_keeps_owner_named_like_probe(self, store, db_path):
        store.upsert("write-probe", "2025-01-01", _ratings(4))
        store.upsert("write-probe", "1900-01-01", _ratings(6))
        store.close()

        reopened = SQLiteCheckinStore(path=db_path, max_init_attempts=1)
        reopened.initialize()
        try:
            records = reopened.list_by_owner("write-probe")
            assert [(r.date, r.overall) for r in records] == [("1900-01-01", 6), ("2025-01-01", 4)]
        finally:
            reopened.close()

    def test_leftover_probe_row_removed_on_start(self, store, db_path):
        with store._engine.begin() as conn:
            conn.execute(text(
                "INSERT INTO checkins (id, user_id, date, overall, wellbeing, growth, relationships, impact) "
                "VALUES ('write-probe-0123456789abcdef0123', 'write-probe-0123456789abcdef0123', "
                "'1900-01-01', 1, 1, 1, 1, 1)"
            ))
        store.initialize()
        with store._engine.connect() as conn:
            assert conn.execute(text("SELECT COUNT(*) FROM checkins")).scalar() == 0

    def test_pragmas_applied(self, store):
        with store._engine.connect() as conn:
            assert conn.execute(text("PRAGMA journal_mode")).scalar().upper() == "DELETE"
            assert conn.execute(text("PRAGMA busy_timeout")).scalar() == 200

    def test_read_only_database_fails_write_probe(self, store):
        store._engine.dispose()

        @event.listens_for(store._engine, "connect")
        def _query_only(dbapi_connection, connection_record):
            dbapi_connection.execute("PRAGMA query_only = ON")

        with pytest.raises(StorageUnavailableError) as exc_info:
            store._check_writable()
        assert "not writable" in exc_info.value.message


# ---------------------------------------------------------------------------
# Lifecycle and error translation
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_close_is_idempotent(self, store):
        store.close()
        store.close()
        assert not store.is_ready

    def test_operations_after_close_are_unavailable(self, store, user_id):
        store.close()
        with pytest.raises(StorageUnavailableError):
            store.list_by_owner(user_id)

    def test_operations_before_initialize_are_unavailable(self, db_path, user_id):
        s = SQLiteCheckinStore(path=db_path)
        assert not s.is_ready
        with pytest.raises(StorageUnavailableError):
            s.upsert(user_id, "2025-01-01", _ratings())


class TestBusy:
    def test_locked_file_raises_storage_busy(self, store, db_path, user_id):
        holder = sqlite3.connect(db_path, isolation_level=None)
        try:
            holder.execute("BEGIN IMMEDIATE")
            with pytest.raises(StorageBusyError):
                store.upsert(user_id, "2025-01-01", _ratings())
        finally:
            holder.execute("ROLLBACK")
            holder.close()

        # Lock released: the same write now succeeds.
        assert store.upsert(user_id, "2025-01-01", _ratings()).overall == 5

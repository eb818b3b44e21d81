"""
Embedded SQLite file backend.

The database file may live on a freshly mounted (and possibly network
backed) volume, so initialization:
  - creates the parent directory when missing,
  - applies busy_timeout and the configured journal mode on every connection,
  - proves the file accepts writes with a throwaway insert + delete.
"""
from __future__ import annotations

import logging
import os
import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import create_engine, event
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from checkin_tracker.core.errors import ConfigurationError, StorageUnavailableError
from checkin_tracker.db.base import Base
from checkin_tracker.models.checkin import Checkin, RATING_FIELDS
from checkin_tracker.storage import queries
from checkin_tracker.storage.base import (
    BulkResult,
    CheckinRecord,
    CheckinRow,
    CheckinStore,
    Ratings,
    translate_errors,
)

logger = logging.getLogger(__name__)

JOURNAL_MODES = {"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"}

# Probe rows use a fresh id as both row id and owner, so they never touch
# (or collide with) a real owner's history. Real row ids are plain UUIDs.
WRITE_PROBE_ID_PREFIX = "write-probe-"
_WRITE_PROBE_DAY = date(1900, 1, 1)


class SQLiteCheckinStore(CheckinStore):
    backend_name = "SQLite database"

    def __init__(
        self,
        path: str,
        busy_timeout_ms: int = 30_000,
        journal_mode: str = "DELETE",
        **kwargs,
    ):
        super().__init__(**kwargs)
        mode = journal_mode.upper()
        if mode not in JOURNAL_MODES:
            raise ConfigurationError(
                f"Unsupported SQLITE_JOURNAL_MODE {journal_mode!r}; "
                f"expected one of {sorted(JOURNAL_MODES)}"
            )
        self.path = path
        self.busy_timeout_ms = busy_timeout_ms
        self.journal_mode = mode
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    # --- lifecycle -------------------------------------------------------

    def _create_engine(self) -> Engine:
        engine = create_engine(
            f"sqlite:///{self.path}",
            connect_args={
                "timeout": self.busy_timeout_ms / 1000,
                "check_same_thread": False,
            },
        )
        busy_timeout_ms = int(self.busy_timeout_ms)
        journal_mode = self.journal_mode

        @event.listens_for(engine, "connect")
        def _configure_connection(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
            cursor.execute(f"PRAGMA journal_mode = {journal_mode}")
            cursor.close()

        return engine

    def _initialize_schema(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        if not os.path.isdir(directory):
            os.makedirs(directory, exist_ok=True)
            logger.info("Created database directory: %s", directory)

        if self._engine is None:
            self._engine = self._create_engine()
            self._session_factory = sessionmaker(
                bind=self._engine, autoflush=False, expire_on_commit=False
            )
        logger.info(
            "Connected to SQLite database at %s (journal_mode=%s, busy_timeout=%dms)",
            self.path, self.journal_mode, self.busy_timeout_ms,
        )

        Base.metadata.create_all(bind=self._engine)
        self._check_writable()

    def _check_writable(self) -> None:
        """Insert and delete a probe row so a read-only mount fails loudly at startup."""
        probe_id = WRITE_PROBE_ID_PREFIX + uuid.uuid4().hex[:20]
        try:
            with self._session() as db, db.begin():
                # Leftovers from a start that crashed between insert and delete.
                db.query(Checkin).filter(
                    Checkin.id.startswith(WRITE_PROBE_ID_PREFIX, autoescape=True),
                    Checkin.day == _WRITE_PROBE_DAY,
                ).delete(synchronize_session=False)
                db.add(Checkin(
                    id=probe_id,
                    owner_id=probe_id,
                    day=_WRITE_PROBE_DAY,
                    **{field: 1 for field in RATING_FIELDS},
                ))
            with self._session() as db, db.begin():
                db.query(Checkin).filter(Checkin.id == probe_id).delete(
                    synchronize_session=False
                )
        except OperationalError as exc:
            if "readonly" not in str(exc.orig).lower():
                raise
            logger.critical(
                "Database at %s is read-only; writes would be lost: %s", self.path, exc.orig
            )
            raise StorageUnavailableError(
                message=f"Database write test failed: {self.path} is not writable.",
                reason=str(exc.orig),
            ) from exc
        logger.info("Database write test passed")

    def _release(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None

    def _session(self) -> Session:
        if self._session_factory is None:
            raise StorageUnavailableError(
                message="SQLite database is not initialized.", reason="not_initialized"
            )
        return self._session_factory()

    # --- operations ------------------------------------------------------

    def ping(self) -> None:
        with translate_errors(), self._session() as db:
            queries.ping(db)

    def list_by_owner(self, owner_id: str) -> list[CheckinRecord]:
        with translate_errors(owner_id), self._session() as db:
            return [queries.to_record(obj) for obj in queries.select_by_owner(db, owner_id)]

    def get_one(self, owner_id: str, date: str) -> Optional[CheckinRecord]:
        day = queries.parse_day(date)
        with translate_errors(owner_id), self._session() as db:
            obj = queries.select_one(db, owner_id, day)
            return queries.to_record(obj) if obj is not None else None

    def upsert(self, owner_id: str, date: str, ratings: Ratings) -> CheckinRecord:
        """INSERT ... ON CONFLICT DO UPDATE: id and created_at survive an overwrite."""
        day = queries.parse_day(date)
        table = Checkin.__table__
        stmt = sqlite_insert(table).values(
            id=queries.new_id(),
            user_id=owner_id,
            date=day,
            **ratings.as_dict(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "date"],
            set_={field: stmt.excluded[field] for field in RATING_FIELDS},
        )
        with translate_errors(owner_id), self._session() as db, db.begin():
            db.execute(stmt)
            return queries.to_record(queries.select_one(db, owner_id, day))

    def bulk_replace(self, owner_id: str, rows: Sequence[CheckinRow]) -> BulkResult:
        with translate_errors(owner_id), self._session() as db, db.begin():
            removed = queries.delete_owner(db, owner_id)
            inserted = queries.insert_rows(db, owner_id, rows)
        logger.info(
            "Replaced %d check-ins with %d for user %s", removed, inserted, owner_id
        )
        return BulkResult(count=inserted)

    def delete_all_for_owner(self, owner_id: str) -> BulkResult:
        with translate_errors(owner_id), self._session() as db, db.begin():
            removed = queries.delete_owner(db, owner_id)
        return BulkResult(count=removed)

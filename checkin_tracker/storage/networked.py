"""
Networked Azure SQL (SQL Server) backend over a bounded connection pool.

Each operation checks a connection out of the pool for the duration of one
session and returns it on every exit path. Pool waits are bounded by
pool_timeout; server-side lock waits by SET LOCK_TIMEOUT.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, sessionmaker

from checkin_tracker.core.errors import StorageUnavailableError
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

# Single batch so instances starting concurrently cannot both try CREATE TABLE.
CREATE_TABLE_SQL = text("""
IF NOT EXISTS (SELECT * FROM sysobjects WHERE name='checkins' AND xtype='U')
CREATE TABLE checkins (
    id NVARCHAR(36) PRIMARY KEY,
    user_id NVARCHAR(36) NOT NULL,
    date DATE NOT NULL,
    overall INT NOT NULL,
    wellbeing INT NOT NULL,
    growth INT NOT NULL,
    relationships INT NOT NULL,
    impact INT NOT NULL,
    created_at DATETIME2 DEFAULT GETDATE(),
    CONSTRAINT UQ_checkins_user_date UNIQUE(user_id, date),
    CONSTRAINT CK_checkins_overall CHECK (overall BETWEEN 1 AND 10),
    CONSTRAINT CK_checkins_wellbeing CHECK (wellbeing BETWEEN 1 AND 10),
    CONSTRAINT CK_checkins_growth CHECK (growth BETWEEN 1 AND 10),
    CONSTRAINT CK_checkins_relationships CHECK (relationships BETWEEN 1 AND 10),
    CONSTRAINT CK_checkins_impact CHECK (impact BETWEEN 1 AND 10)
)
""")

# HOLDLOCK keeps the match/insert decision atomic under concurrent upserts.
MERGE_CHECKIN_SQL = text("""
MERGE checkins WITH (HOLDLOCK) AS target
USING (SELECT :id AS id, :user_id AS user_id, CAST(:date AS DATE) AS date,
              :overall AS overall, :wellbeing AS wellbeing, :growth AS growth,
              :relationships AS relationships, :impact AS impact) AS source
ON target.user_id = source.user_id AND target.date = source.date
WHEN MATCHED THEN
    UPDATE SET overall = source.overall, wellbeing = source.wellbeing,
               growth = source.growth, relationships = source.relationships,
               impact = source.impact
WHEN NOT MATCHED THEN
    INSERT (id, user_id, date, overall, wellbeing, growth, relationships, impact)
    VALUES (source.id, source.user_id, source.date, source.overall,
            source.wellbeing, source.growth, source.relationships, source.impact);
""")


def build_url(
    server: str,
    database: str,
    username: str,
    password: str,
    driver: str = "ODBC Driver 18 for SQL Server",
) -> URL:
    return URL.create(
        "mssql+pyodbc",
        username=username,
        password=password,
        host=server,
        database=database,
        query={
            "driver": driver,
            "Encrypt": "yes",
            "TrustServerCertificate": "no",
        },
    )


class AzureSQLCheckinStore(CheckinStore):
    backend_name = "Azure SQL Database"

    def __init__(
        self,
        server: str,
        database: str,
        username: str,
        password: str,
        driver: str = "ODBC Driver 18 for SQL Server",
        pool_size: int = 10,
        pool_timeout: float = 30.0,
        lock_timeout_ms: int = 30_000,
        engine: Optional[Engine] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.server = server
        self.database = database
        self.url = build_url(server, database, username, password, driver)
        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self.lock_timeout_ms = lock_timeout_ms
        self._engine: Optional[Engine] = engine
        self._session_factory: Optional[sessionmaker] = (
            self._make_session_factory(engine) if engine is not None else None
        )

    @staticmethod
    def _make_session_factory(engine: Engine) -> sessionmaker:
        return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    # --- lifecycle -------------------------------------------------------

    def _create_engine(self) -> Engine:
        engine = create_engine(
            self.url,
            pool_size=self.pool_size,
            max_overflow=0,
            pool_timeout=self.pool_timeout,
            pool_pre_ping=True,
        )
        lock_timeout_ms = int(self.lock_timeout_ms)

        @event.listens_for(engine, "connect")
        def _set_lock_timeout(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute(f"SET LOCK_TIMEOUT {lock_timeout_ms}")
            cursor.close()

        return engine

    def _initialize_schema(self) -> None:
        logger.info("Connecting to Azure SQL Database: %s/%s", self.server, self.database)
        if self._engine is None:
            self._engine = self._create_engine()
            self._session_factory = self._make_session_factory(self._engine)
        with self._engine.begin() as conn:
            conn.execute(CREATE_TABLE_SQL)

    def _release(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None

    def _session(self) -> Session:
        if self._session_factory is None:
            raise StorageUnavailableError(
                message="Azure SQL Database is not initialized.", reason="not_initialized"
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
        """Single MERGE: id and created_at survive an overwrite."""
        day = queries.parse_day(date)
        params = {"id": queries.new_id(), "user_id": owner_id, "date": day, **ratings.as_dict()}
        with translate_errors(owner_id), self._session() as db, db.begin():
            db.execute(MERGE_CHECKIN_SQL, params)
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

"""
Backend selection.

All four AZURE_SQL_* settings present -> Azure SQL.
None of them present                 -> SQLite file.
Some but not all present             -> ConfigurationError (fail fast, so a
                                        mistyped variable never silently
                                        lands data in a local file).
"""
from __future__ import annotations

import logging

from checkin_tracker.core.config import Settings
from checkin_tracker.core.errors import ConfigurationError
from checkin_tracker.storage.base import CheckinStore
from checkin_tracker.storage.embedded import SQLiteCheckinStore
from checkin_tracker.storage.networked import AzureSQLCheckinStore

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> CheckinStore:
    credentials = settings.azure_sql_credentials
    present = [name for name, value in credentials.items() if value]
    missing = [name for name, value in credentials.items() if not value]

    retry = {
        "max_init_attempts": settings.DB_INIT_MAX_ATTEMPTS,
        "init_base_delay": settings.DB_INIT_BASE_DELAY_SECONDS,
    }

    if present and missing:
        raise ConfigurationError(
            "Incomplete Azure SQL configuration: "
            f"{', '.join(present)} set but {', '.join(missing)} missing. "
            "Set all four variables, or none to use the local SQLite database."
        )

    if present:
        logger.info("Using Azure SQL Database")
        return AzureSQLCheckinStore(
            server=settings.AZURE_SQL_SERVER,
            database=settings.AZURE_SQL_DATABASE,
            username=settings.AZURE_SQL_USERNAME,
            password=settings.AZURE_SQL_PASSWORD,
            driver=settings.AZURE_SQL_DRIVER,
            pool_size=settings.DB_POOL_SIZE,
            pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
            **retry,
        )

    logger.info("Using SQLite database at %s", settings.sqlite_path)
    return SQLiteCheckinStore(
        path=settings.sqlite_path,
        busy_timeout_ms=settings.SQLITE_BUSY_TIMEOUT_MS,
        journal_mode=settings.SQLITE_JOURNAL_MODE,
        **retry,
    )

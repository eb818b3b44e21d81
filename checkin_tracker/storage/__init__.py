"""
Check-in storage: one contract, two interchangeable backends.

Usage:
    from checkin_tracker.storage import create_store

    store = create_store(settings)
    store.initialize()
    store.upsert(user_id, "2025-01-01", Ratings(5, 5, 5, 5, 5))
"""

from checkin_tracker.storage.base import (
    BulkResult,
    CheckinRecord,
    CheckinRow,
    CheckinStore,
    Ratings,
)
from checkin_tracker.storage.embedded import SQLiteCheckinStore
from checkin_tracker.storage.networked import AzureSQLCheckinStore
from checkin_tracker.storage.factory import create_store

__all__ = [
    "BulkResult",
    "CheckinRecord",
    "CheckinRow",
    "CheckinStore",
    "Ratings",
    "SQLiteCheckinStore",
    "AzureSQLCheckinStore",
    "create_store",
]

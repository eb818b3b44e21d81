from fastapi import Request
from sqlalchemy.orm import DeclarativeBase

from checkin_tracker.core.errors import StorageUnavailableError


class Base(DeclarativeBase):
    pass


def get_store(request: Request):
    """Readiness gate: hand out the store only once initialize() succeeded."""
    store = getattr(request.app.state, "store", None)
    if store is None or not store.is_ready:
        raise StorageUnavailableError(
            message="Database is not ready. Please try again in a moment.",
            reason="initializing",
        )
    return store

"""
Check-in store contract.

Every backend (embedded SQLite file, networked Azure SQL) implements
CheckinStore and honors the same observable behavior:

    initialize()                       idempotent schema setup, retried with backoff
    list_by_owner(owner_id)            -> list[CheckinRecord], ascending by date
    get_one(owner_id, date)            -> CheckinRecord | None
    upsert(owner_id, date, ratings)    -> CheckinRecord   (single atomic statement)
    bulk_replace(owner_id, rows)       -> BulkResult      (all-or-nothing)
    delete_all_for_owner(owner_id)     -> BulkResult
    close()                            idempotent

Driver exceptions never leave a store: translate_errors() maps them to
StorageBusyError, ConstraintViolationError or StorageUnavailableError.
"""
from __future__ import annotations

import abc
import logging
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Iterator, Optional, Sequence

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

from checkin_tracker.core.errors import (
    CheckinException,
    ConstraintViolationError,
    StorageBusyError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

# Driver messages meaning "a bounded lock wait expired".
_BUSY_MARKERS = (
    "database is locked",          # sqlite busy_timeout elapsed
    "database table is locked",
    "lock request time out",       # SQL Server error 1222 (SET LOCK_TIMEOUT)
)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Ratings:
    overall: int
    wellbeing: int
    growth: int
    relationships: int
    impact: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class CheckinRow:
    """One row of a bulk replace: a date plus its five ratings."""
    date: str
    ratings: Ratings


@dataclass(frozen=True)
class CheckinRecord:
    id: str
    owner_id: str
    date: str  # YYYY-MM-DD
    overall: int
    wellbeing: int
    growth: int
    relationships: int
    impact: int
    created_at: Optional[datetime] = None

    @property
    def ratings(self) -> Ratings:
        return Ratings(
            overall=self.overall,
            wellbeing=self.wellbeing,
            growth=self.growth,
            relationships=self.relationships,
            impact=self.impact,
        )


@dataclass(frozen=True)
class BulkResult:
    count: int


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _driver_message(exc: Exception) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


@contextmanager
def translate_errors(owner_id: Optional[str] = None) -> Iterator[None]:
    try:
        yield
    except CheckinException:
        raise
    except IntegrityError as exc:
        raise ConstraintViolationError(owner_id or "", reason=_driver_message(exc)) from exc
    except PoolTimeoutError as exc:
        raise StorageBusyError(reason="connection pool wait timed out") from exc
    except OperationalError as exc:
        message = _driver_message(exc)
        if any(marker in message.lower() for marker in _BUSY_MARKERS):
            raise StorageBusyError(reason=message) from exc
        raise StorageUnavailableError(reason=message) from exc
    except DBAPIError as exc:
        raise StorageUnavailableError(reason=_driver_message(exc)) from exc


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class CheckinStore(abc.ABC):
    """Storage contract shared by every backend."""

    #: Human-readable backend name for logs.
    backend_name: str = "checkin-store"

    def __init__(
        self,
        max_init_attempts: int = 10,
        init_base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._max_init_attempts = max(1, max_init_attempts)
        self._init_base_delay = init_base_delay
        self._sleep = sleep
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    def initialize(self) -> None:
        """
        Ensure the schema exists, retrying with exponential backoff.

        Attempt n that fails waits ``base_delay * 2**(n-1)`` seconds before
        attempt n+1. Raises StorageUnavailableError once attempts run out.
        """
        attempts = self._max_init_attempts
        for attempt in range(1, attempts + 1):
            try:
                logger.info(
                    "Initializing %s (attempt %d/%d)", self.backend_name, attempt, attempts
                )
                self._initialize_schema()
            except (SQLAlchemyError, OSError, CheckinException) as exc:
                logger.error(
                    "%s initialization failed (attempt %d): %s",
                    self.backend_name, attempt, exc,
                )
                self._release()
                if attempt == attempts:
                    raise StorageUnavailableError(
                        message=(
                            f"{self.backend_name} could not be initialized "
                            f"after {attempts} attempts."
                        ),
                        reason=str(exc),
                    ) from exc
                delay = self._init_base_delay * (2 ** (attempt - 1))
                logger.info("Retrying in %.1fs...", delay)
                self._sleep(delay)
            else:
                self._ready = True
                logger.info("%s initialized successfully", self.backend_name)
                return

    def close(self) -> None:
        was_ready = self._ready
        self._ready = False
        self._release()
        if was_ready:
            logger.info("%s connection closed", self.backend_name)

    # --- backend hooks ---------------------------------------------------

    @abc.abstractmethod
    def _initialize_schema(self) -> None:
        """One initialization attempt. Raise on failure."""

    @abc.abstractmethod
    def _release(self) -> None:
        """Dispose connections/handles. Must tolerate being called twice."""

    # --- operations ------------------------------------------------------

    @abc.abstractmethod
    def ping(self) -> None:
        """Round-trip a trivial query. Raises StorageUnavailableError on failure."""

    @abc.abstractmethod
    def list_by_owner(self, owner_id: str) -> list[CheckinRecord]:
        ...

    @abc.abstractmethod
    def get_one(self, owner_id: str, date: str) -> Optional[CheckinRecord]:
        ...

    @abc.abstractmethod
    def upsert(self, owner_id: str, date: str, ratings: Ratings) -> CheckinRecord:
        ...

    @abc.abstractmethod
    def bulk_replace(self, owner_id: str, rows: Sequence[CheckinRow]) -> BulkResult:
        ...

    @abc.abstractmethod
    def delete_all_for_owner(self, owner_id: str) -> BulkResult:
        ...

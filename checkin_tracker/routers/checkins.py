"""
Check-ins router.

GET    /api/checkins/{user_id}            — full history, oldest first
GET    /api/checkins/{user_id}/export     — full history as CSV
GET    /api/checkins/{user_id}/{date}     — one day, or null
POST   /api/checkins                      — create or overwrite one day
PUT    /api/checkins/{user_id}/bulk       — replace full history (JSON rows)
POST   /api/checkins/{user_id}/import     — replace full history (CSV body)
DELETE /api/checkins/{user_id}/bulk       — delete full history
GET    /api/generate-id                   — new random user token
"""
from __future__ import annotations

import logging
import re
import uuid
from datetime import date as _date, datetime, timezone
from typing import Annotated, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import Response

from checkin_tracker.core.errors import ImportValidationError, InvalidDateError
from checkin_tracker.db.base import get_store
from checkin_tracker.schemas.checkin import (
    DATE_PATTERN,
    BulkReplaceRequest,
    BulkResultOut,
    CheckinCreate,
    CheckinOut,
    GeneratedIdOut,
)
from checkin_tracker.schemas.common import ErrorResponse, STORAGE_ERRORS
from checkin_tracker.services.csv_import import export_checkins_csv, parse_checkin_csv
from checkin_tracker.storage.base import BulkResult, CheckinStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["checkins"], responses=STORAGE_ERRORS)

UserIdPath = Annotated[str, Path(min_length=1, max_length=36)]

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _replace_message(result: BulkResult) -> str:
    if result.count == 0:
        return "All data deleted successfully"
    return f"Successfully saved {result.count} records"


async def csv_body(request: Request) -> str:
    """Read the raw request body as UTF-8 CSV text (a BOM is tolerated)."""
    raw = await request.body()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ImportValidationError("CSV payload must be UTF-8 text") from None


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@router.get(
    "/checkins/{user_id}",
    response_model=list[CheckinOut],
    summary="All check-ins for a user",
)
def list_checkins(user_id: UserIdPath, store: CheckinStore = Depends(get_store)):
    """Return every check-in for `user_id` ordered by date ascending. Unknown users get `[]`."""
    return [CheckinOut.from_record(r) for r in store.list_by_owner(user_id)]


@router.get(
    "/checkins/{user_id}/export",
    summary="Download all check-ins as CSV",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
)
def export_checkins(user_id: UserIdPath, store: CheckinStore = Depends(get_store)):
    today = datetime.now(tz=timezone.utc).date().isoformat()
    filename = f"checkin-data-{user_id[:8]}-{today}.csv"
    # Header values are latin-1; ids may be any text.
    fallback = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    return Response(
        content=export_checkins_csv(store.list_by_owner(user_id)),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": (
                f'attachment; filename="{fallback}"; '
                f"filename*=UTF-8''{quote(filename, safe='')}"
            )
        },
    )


@router.get(
    "/checkins/{user_id}/{date}",
    response_model=Optional[CheckinOut],
    summary="Check-in for a single day",
    responses={200: {"description": "The check-in, or `null` when the day has none."}},
)
def get_checkin(
    user_id: UserIdPath,
    date: Annotated[str, Path(pattern=DATE_PATTERN, examples=["2025-01-01"])],
    store: CheckinStore = Depends(get_store),
):
    try:
        _date.fromisoformat(date)
    except ValueError:
        raise InvalidDateError(date) from None
    record = store.get_one(user_id, date)
    return CheckinOut.from_record(record) if record is not None else None


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

@router.post(
    "/checkins",
    response_model=CheckinOut,
    summary="Create or overwrite a day's check-in",
)
def save_checkin(payload: CheckinCreate, store: CheckinStore = Depends(get_store)):
    """
    Upsert keyed by `(userId, date)`: saving a day that already has a check-in
    overwrites its five ratings and keeps its `id` and `created_at`.
    """
    record = store.upsert(payload.user_id, payload.date, payload.to_ratings())
    return CheckinOut.from_record(record)


@router.put(
    "/checkins/{user_id}/bulk",
    response_model=BulkResultOut,
    summary="Replace a user's full history",
    responses={409: {"model": ErrorResponse, "description": "Duplicate date in `data`; nothing changed."}},
)
def bulk_replace_checkins(
    user_id: UserIdPath,
    payload: BulkReplaceRequest,
    store: CheckinStore = Depends(get_store),
):
    """
    Atomically delete every check-in for `user_id` and insert `data`.
    Either every row is stored or nothing changes. An empty `data` deletes all.
    """
    result = store.bulk_replace(user_id, [row.to_row() for row in payload.data])
    return BulkResultOut(count=result.count, message=_replace_message(result))


@router.post(
    "/checkins/{user_id}/import",
    response_model=BulkResultOut,
    summary="Replace a user's full history from CSV",
    responses={
        409: {"model": ErrorResponse, "description": "Duplicate date in the CSV; nothing changed."},
        422: {"model": ErrorResponse, "description": "Malformed row; `details` has `row` and `field`."},
    },
)
def import_checkins(
    user_id: UserIdPath,
    csv_text: str = Depends(csv_body),
    store: CheckinStore = Depends(get_store),
):
    """
    Body is `text/csv` with header `date,overall,wellbeing,growth,relationships,impact`.
    The whole file is validated before anything is written.
    """
    rows = parse_checkin_csv(csv_text)
    result = store.bulk_replace(user_id, rows)
    logger.info("Imported %d check-ins from CSV for user %s", result.count, user_id)
    return BulkResultOut(count=result.count, message=_replace_message(result))


@router.delete(
    "/checkins/{user_id}/bulk",
    response_model=BulkResultOut,
    summary="Delete a user's full history",
)
def delete_checkins(user_id: UserIdPath, store: CheckinStore = Depends(get_store)):
    result = store.delete_all_for_owner(user_id)
    return BulkResultOut(count=result.count, message=f"Deleted {result.count} records")


@router.get(
    "/generate-id",
    response_model=GeneratedIdOut,
    summary="Generate a new random user token",
)
def generate_id():
    return GeneratedIdOut(userId=str(uuid.uuid4()))

"""
CSV import / export for a user's full check-in history.

Public API
----------
parse_checkin_csv(text)        -> list[CheckinRow]   (raises ImportValidationError)
export_checkins_csv(records)   -> str

Format:
    date,overall,wellbeing,growth,relationships,impact
    2025-01-01,7,6,8,5,7

Validation is all-or-nothing: the first bad row aborts the import, so the
store is never called with a partial payload. Duplicate dates are left for
the store's unique constraint to reject.
"""
from __future__ import annotations

import csv
import io
import re
from datetime import date
from typing import Iterable, Optional

from checkin_tracker.core.errors import ImportValidationError
from checkin_tracker.models.checkin import RATING_FIELDS
from checkin_tracker.storage.base import CheckinRecord, CheckinRow, Ratings

CSV_COLUMNS = ("date",) + RATING_FIELDS
RATING_MIN = 1
RATING_MAX = 10

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_INT_RE = re.compile(r"^[+-]?\d+$")


def _parse_date(value: str, line_no: int) -> str:
    if not _DATE_RE.match(value):
        raise ImportValidationError(
            f"Row {line_no}: date must be in YYYY-MM-DD format", row=line_no, field="date"
        )
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ImportValidationError(
            f"Row {line_no}: {value} is not a valid calendar date", row=line_no, field="date"
        ) from None
    return value


def _parse_rating(value: str, field: str, line_no: int) -> int:
    if not _INT_RE.match(value) or not RATING_MIN <= int(value) <= RATING_MAX:
        raise ImportValidationError(
            f"Row {line_no}: {field} must be a whole number between "
            f"{RATING_MIN} and {RATING_MAX}",
            row=line_no,
            field=field,
        )
    return int(value)


def _is_blank(cells: list[str]) -> bool:
    return not any(c.strip() for c in cells)


def parse_checkin_csv(text: str) -> list[CheckinRow]:
    """
    Validate a CSV payload and return its rows.

    Row numbers in errors are 1-based physical file lines, counted before
    any blank lines are skipped. The header is the first non-blank line.
    Quoted fields are accepted; extra columns are ignored.
    """
    reader = csv.reader(io.StringIO(text, newline=""))
    rows: list[CheckinRow] = []
    headers: Optional[list[str]] = None
    header_line = 1

    try:
        for values in reader:
            line_no = reader.line_num
            if _is_blank(values):
                continue

            if headers is None:
                headers = [h.strip().lower() for h in values]
                header_line = line_no
                missing = [c for c in CSV_COLUMNS if c not in headers]
                if missing:
                    raise ImportValidationError(
                        f"CSV must include these columns: {', '.join(CSV_COLUMNS)}",
                        row=line_no,
                        field=missing[0],
                    )
                continue

            values = [v.strip() for v in values]
            if len(values) != len(headers):
                raise ImportValidationError(
                    f"Row {line_no} has {len(values)} columns, expected {len(headers)}",
                    row=line_no,
                )
            cells = dict(zip(headers, values))

            day = _parse_date(cells["date"], line_no)
            ratings = Ratings(**{
                field: _parse_rating(cells[field], field, line_no) for field in RATING_FIELDS
            })
            rows.append(CheckinRow(date=day, ratings=ratings))
    except csv.Error as exc:
        raise ImportValidationError(
            f"Row {reader.line_num}: malformed CSV ({exc})", row=reader.line_num
        ) from None

    if headers is None:
        raise ImportValidationError("CSV must have at least a header row", row=header_line)
    return rows


def export_checkins_csv(records: Iterable[CheckinRecord]) -> str:
    """Render records in the same format parse_checkin_csv accepts."""
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for r in records:
        writer.writerow([r.date] + [getattr(r, field) for field in RATING_FIELDS])
    return out.getvalue()

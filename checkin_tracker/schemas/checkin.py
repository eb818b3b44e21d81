"""
Check-in request / response schemas.

Upsert:        POST /api/checkins                 → CheckinCreate      → CheckinOut
Bulk replace:  PUT  /api/checkins/{user_id}/bulk  → BulkReplaceRequest → BulkResultOut
Delete all:    DELETE /api/checkins/{user_id}/bulk                     → BulkResultOut
"""
from __future__ import annotations

from datetime import date as _date
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from checkin_tracker.storage.base import CheckinRecord, CheckinRow, Ratings

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def _check_calendar_date(value: str) -> str:
    _date.fromisoformat(value)  # rejects e.g. 2025-02-30
    return value


Rating = Annotated[int, Field(ge=1, le=10, strict=True)]
UserId = Annotated[str, Field(min_length=1, max_length=36, examples=["3f1c2a9e-7b0d-4c61-9a53-0e6c2d8f4b11"])]
IsoDate = Annotated[
    str,
    Field(pattern=DATE_PATTERN, examples=["2025-01-01"]),
    AfterValidator(_check_calendar_date),
]


class RatingsIn(BaseModel):
    overall: Rating
    wellbeing: Rating
    growth: Rating
    relationships: Rating
    impact: Rating

    def to_ratings(self) -> Ratings:
        return Ratings(
            overall=self.overall,
            wellbeing=self.wellbeing,
            growth=self.growth,
            relationships=self.relationships,
            impact=self.impact,
        )


class CheckinCreate(RatingsIn):
    """Create or overwrite the check-in for (userId, date)."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: UserId = Field(alias="userId")
    date: IsoDate


class CheckinRowIn(RatingsIn):
    date: IsoDate

    def to_row(self) -> CheckinRow:
        return CheckinRow(date=self.date, ratings=self.to_ratings())


class BulkReplaceRequest(BaseModel):
    """The complete new history for a user. An empty list deletes everything."""
    data: list[CheckinRowIn] = Field(description="Rows to store; replaces all existing rows.")


class CheckinOut(BaseModel):
    id: str
    user_id: str
    date: str
    overall: int
    wellbeing: int
    growth: int
    relationships: int
    impact: int
    created_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: CheckinRecord) -> "CheckinOut":
        return cls(
            id=record.id,
            user_id=record.owner_id,
            date=record.date,
            overall=record.overall,
            wellbeing=record.wellbeing,
            growth=record.growth,
            relationships=record.relationships,
            impact=record.impact,
            created_at=record.created_at.isoformat() if record.created_at else None,
        )


class BulkResultOut(BaseModel):
    count: int = Field(description="Rows inserted (bulk replace) or removed (delete).")
    message: str


class GeneratedIdOut(BaseModel):
    userId: str

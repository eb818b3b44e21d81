"""
ORM queries shared by both SQL backends.

All functions take an open Session and never commit; transaction
boundaries belong to the calling store.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional, Sequence

from sqlalchemy import text
from sqlalchemy.orm import Session

from checkin_tracker.models.checkin import Checkin
from checkin_tracker.storage.base import CheckinRecord, CheckinRow


def new_id() -> str:
    return str(uuid.uuid4())


def parse_day(value: str) -> date:
    """'YYYY-MM-DD' -> date. Raises ValueError on anything else."""
    return date.fromisoformat(value)


def iso_date(value) -> str:
    """
    Reduce a driver date value to 'YYYY-MM-DD'.

    SQL Server drivers may hand back datetime (midnight, sometimes with
    tzinfo) for DATE columns; the time component is dropped.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def to_record(obj: Checkin) -> CheckinRecord:
    return CheckinRecord(
        id=obj.id,
        owner_id=obj.owner_id,
        date=iso_date(obj.day),
        overall=obj.overall,
        wellbeing=obj.wellbeing,
        growth=obj.growth,
        relationships=obj.relationships,
        impact=obj.impact,
        created_at=obj.created_at,
    )


def ping(db: Session) -> None:
    db.execute(text("SELECT 1"))


def select_by_owner(db: Session, owner_id: str) -> list[Checkin]:
    return (
        db.query(Checkin)
        .filter(Checkin.owner_id == owner_id)
        .order_by(Checkin.day.asc())
        .all()
    )


def select_one(db: Session, owner_id: str, day: date) -> Optional[Checkin]:
    return (
        db.query(Checkin)
        .filter(Checkin.owner_id == owner_id, Checkin.day == day)
        .one_or_none()
    )


def delete_owner(db: Session, owner_id: str) -> int:
    return (
        db.query(Checkin)
        .filter(Checkin.owner_id == owner_id)
        .delete(synchronize_session=False)
    )


def insert_rows(db: Session, owner_id: str, rows: Sequence[CheckinRow]) -> int:
    """Insert one Checkin per row; a duplicate date fails the flush."""
    for row in rows:
        db.add(Checkin(
            id=new_id(),
            owner_id=owner_id,
            day=parse_day(row.date),
            **row.ratings.as_dict(),
        ))
        db.flush()
    return len(rows)

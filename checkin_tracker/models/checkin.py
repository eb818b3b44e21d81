from datetime import datetime, date
from sqlalchemy import CheckConstraint, Integer, String, DateTime, Date, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from checkin_tracker.db.base import Base

RATING_FIELDS = ("overall", "wellbeing", "growth", "relationships", "impact")


class Checkin(Base):
    """One daily check-in per (user, date). Column names match existing deployments."""

    __tablename__ = "checkins"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="UQ_checkins_user_date"),
        *(
            CheckConstraint(f"{field} BETWEEN 1 AND 10", name=f"CK_checkins_{field}")
            for field in RATING_FIELDS
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column("user_id", String(36), nullable=False)
    day: Mapped[date] = mapped_column("date", Date, nullable=False)
    overall: Mapped[int] = mapped_column(Integer, nullable=False)
    wellbeing: Mapped[int] = mapped_column(Integer, nullable=False)
    growth: Mapped[int] = mapped_column(Integer, nullable=False)
    relationships: Mapped[int] = mapped_column(Integer, nullable=False)
    impact: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=True
    )

"""Ordering policy settings ORM model."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mealshift.db.base import Base

CUTOFF_MODES = ("PER_SHIFT", "WEEKLY")


class OrderingSetting(Base):
    """Singleton settings row (id=1).

    Only the fields of the branch selected by ``cutoff_mode`` are authoritative.
    """

    __tablename__ = "ordering_settings"

    id: Mapped[int] = mapped_column(primary_key=True, default=1)
    cutoff_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="PER_SHIFT")
    cutoff_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cutoff_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    cancel_cutoff_extra_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_order_days_ahead: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    weekly_cutoff_day: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    weekly_cutoff_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=17)
    weekly_cutoff_minute: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    orderable_days: Mapped[str] = mapped_column(String(32), nullable=False, default="1,2,3,4,5,6")
    max_weeks_ahead: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    blacklist_strikes: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    blacklist_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    enforce_canteen_checkin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

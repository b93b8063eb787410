"""Shift ORM model."""

from decimal import Decimal

from sqlalchemy import Boolean, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from mealshift.db.base import Base


class Shift(Base):
    """Named service window; times are local wall-clock ``HH:MM`` strings.

    ``end_time`` may be numerically before ``start_time``, which means the
    shift ends on the following day. Overnight-ness is never stored.
    """

    __tablename__ = "shifts"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    break_start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    break_end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    meal_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

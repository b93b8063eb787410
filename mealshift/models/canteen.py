"""Canteen ORM models."""

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealshift.db.base import Base


class Canteen(Base):
    """Pickup location with an optional overall capacity per shift."""

    __tablename__ = "canteens"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    shift_capacities: Mapped[list["CanteenShift"]] = relationship(back_populates="canteen", cascade="all, delete-orphan")


class CanteenShift(Base):
    """Shift served by a canteen; ``capacity`` overrides the canteen capacity."""

    __tablename__ = "canteen_shifts"
    __table_args__ = (UniqueConstraint("canteen_id", "shift_id", name="uq_canteen_shift"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    canteen_id: Mapped[int] = mapped_column(ForeignKey("canteens.id"), nullable=False)
    shift_id: Mapped[int] = mapped_column(ForeignKey("shifts.id"), nullable=False)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    canteen: Mapped[Canteen] = relationship(back_populates="shift_capacities")

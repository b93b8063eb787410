"""Meal reservation model."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealshift.db.base import Base

ORDER_STATUSES = ("ORDERED", "PICKED_UP", "NO_SHOW", "CANCELLED")


class Order(Base):
    """One reservation for one user, one shift and one calendar date."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    shift_id: Mapped[int] = mapped_column(ForeignKey("shifts.id"), nullable=False, index=True)
    canteen_id: Mapped[int | None] = mapped_column(ForeignKey("canteens.id"), nullable=True)
    order_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    ordered_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ORDERED", index=True)
    qr_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    meal_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    check_in_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    checked_in_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    checked_in_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cancelled_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    user: Mapped["User"] = relationship(back_populates="orders", foreign_keys=[user_id])
    shift: Mapped["Shift"] = relationship()
    canteen: Mapped["Canteen | None"] = relationship()

    __table_args__ = (
        # Storage-level guard against double booking; cancelled rows do not count.
        Index(
            "uq_orders_user_date_active",
            "user_id",
            "order_date",
            unique=True,
            sqlite_where=text("status != 'CANCELLED'"),
            postgresql_where=text("status != 'CANCELLED'"),
        ),
        Index("ix_orders_canteen_shift_date", "canteen_id", "shift_id", "order_date"),
    )

"""Blacklist (ordering suspension) model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealshift.db.base import Base


class Blacklist(Base):
    """One suspension row; ``end_date`` NULL means indefinite.

    ``is_active`` may lag behind ``end_date``; readers must use
    ``mealshift.services.blacklist_service.is_blacklist_active``.
    """

    __tablename__ = "blacklists"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    user: Mapped["User"] = relationship(back_populates="blacklists")

"""User ORM model."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mealshift.db.base import Base

USER_ROLES = ("USER", "ADMIN", "CANTEEN")
PRIVILEGED_ROLES: frozenset[str] = frozenset({"ADMIN", "CANTEEN"})


def normalize_user_role(value: str | None) -> str:
    """Return canonical role name or raise for unknown values."""
    normalized = str(value or "").strip().upper()
    if normalized not in USER_ROLES:
        raise ValueError(f"Unknown user role: {value!r}")
    return normalized


class User(Base):
    """Employee account; ``external_id`` is the employee number used to log in."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(Enum(*USER_ROLES, name="user_role"), nullable=False, default="USER")
    no_show_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    orders: Mapped[list["Order"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="Order.user_id",
    )
    blacklists: Mapped[list["Blacklist"]] = relationship(back_populates="user", cascade="all, delete-orphan")

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

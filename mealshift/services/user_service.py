"""User service operations."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from mealshift.models.user import User, normalize_user_role


def get_user_by_external_id(db: Session, external_id: str) -> User | None:
    return db.scalar(select(User).where(User.external_id == external_id.strip()).limit(1))


def get_user_by_id(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def create_user(
    db: Session,
    external_id: str,
    name: str,
    hashed_password: str,
    role: str = "USER",
    email: str | None = None,
) -> User:
    user = User(
        external_id=external_id.strip(),
        name=name,
        password_hash=hashed_password,
        role=normalize_user_role(role),
        email=email,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

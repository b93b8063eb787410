"""Shared fixtures: a fresh SQLite database per test and small model factories."""

from collections.abc import Callable, Iterator
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from mealshift.core.security import get_password_hash
from mealshift.db import session as db_session
from mealshift.db.base import Base
from mealshift.models import Shift, User
from mealshift.services.events import EventBroadcaster
from mealshift.services.settings_service import get_or_create_settings_record

TEST_PASSWORD = "secret123"


@pytest.fixture()
def session_factory(tmp_path: Path, monkeypatch) -> Iterator[sessionmaker]:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'mealshift_test.db'}",
        connect_args={"check_same_thread": False},
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    monkeypatch.setattr(db_session, "engine", engine)
    monkeypatch.setattr(db_session, "SessionLocal", testing_session_local)
    yield testing_session_local
    engine.dispose()


@pytest.fixture()
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session: Session = session_factory()
    try:
        get_or_create_settings_record(session)
        yield session
    finally:
        session.close()


@pytest.fixture()
def events() -> EventBroadcaster:
    return EventBroadcaster()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., User]:
    password_hash = get_password_hash(TEST_PASSWORD)

    def _make_user(external_id: str, role: str = "USER", name: str | None = None, no_show_count: int = 0) -> User:
        user = User(
            external_id=external_id,
            name=name or f"Employee {external_id}",
            password_hash=password_hash,
            role=role,
            no_show_count=no_show_count,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_shift(db: Session) -> Callable[..., Shift]:
    def _make_shift(
        name: str,
        start: str,
        end: str,
        break_start: str | None = None,
        break_end: str | None = None,
        is_active: bool = True,
    ) -> Shift:
        shift = Shift(
            name=name,
            start_time=start,
            end_time=end,
            break_start_time=break_start,
            break_end_time=break_end,
            is_active=is_active,
            meal_price=Decimal("15000.00"),
        )
        db.add(shift)
        db.commit()
        db.refresh(shift)
        return shift

    return _make_shift

from sqlalchemy import select

from mealshift.core.config import settings
from mealshift.core.security import verify_password
from mealshift.db.seed import DEFAULT_SHIFTS, ensure_seed_data
from mealshift.models import OrderingSetting, Shift, User
from mealshift.services.account_service import DEV_ADMIN_PASSWORD, authenticate_user, ensure_default_admin


def test_ensure_default_admin_is_idempotent(session_factory, monkeypatch) -> None:
    monkeypatch.setattr(settings, "admin_pass", "")

    with session_factory() as session:
        assert ensure_default_admin(session) is False
    with session_factory() as session:
        assert ensure_default_admin(session) is True
        admins = session.scalars(select(User).where(User.external_id == settings.admin_external_id)).all()
        assert len(admins) == 1
        assert admins[0].role == "ADMIN"
        assert verify_password(DEV_ADMIN_PASSWORD, admins[0].password_hash)


def test_ensure_default_admin_repairs_role_and_active(session_factory, monkeypatch) -> None:
    monkeypatch.setattr(settings, "admin_pass", "")
    with session_factory() as session:
        session.add(
            User(
                external_id=settings.admin_external_id,
                name="Legacy admin",
                password_hash="legacy-hash",
                role="USER",
                is_active=False,
            )
        )
        session.commit()

    with session_factory() as session:
        assert ensure_default_admin(session) is True
        admin = session.scalar(select(User).where(User.external_id == settings.admin_external_id))
        assert admin.is_active is True
        assert admin.role == "ADMIN"


def test_seed_creates_settings_and_dev_shifts_once(session_factory, monkeypatch) -> None:
    monkeypatch.setattr(settings, "app_env", "dev")

    with session_factory() as session:
        ensure_seed_data(session)
        ensure_seed_data(session)
        shifts = session.scalars(select(Shift).order_by(Shift.id)).all()
        assert [shift.name for shift in shifts] == [values["name"] for values in DEFAULT_SHIFTS]
        assert session.scalar(select(OrderingSetting.cutoff_mode)) == "PER_SHIFT"


def test_seed_skips_shifts_outside_dev(session_factory, monkeypatch) -> None:
    monkeypatch.setattr(settings, "app_env", "prod")

    with session_factory() as session:
        ensure_seed_data(session)
        assert session.scalars(select(Shift)).all() == []


def test_inactive_user_cannot_authenticate(db, make_user) -> None:
    user = make_user("S900")
    user.is_active = False
    db.commit()

    assert authenticate_user(db, "S900", "secret123") is None
    assert authenticate_user(db, "nobody", "secret123") is None

"""Database seeding helpers."""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from mealshift.core.config import settings
from mealshift.models import Shift
from mealshift.services.account_service import ensure_default_admin
from mealshift.services.settings_service import get_or_create_settings_record

logger = logging.getLogger(__name__)

DEFAULT_SHIFTS: tuple[dict, ...] = (
    {"name": "Shift 1", "start_time": "07:00", "end_time": "15:00", "break_start_time": "11:00", "break_end_time": "12:00"},
    {"name": "Shift 2", "start_time": "15:00", "end_time": "23:00", "break_start_time": "18:00", "break_end_time": "19:00"},
    {"name": "Shift 3", "start_time": "23:00", "end_time": "07:00", "break_start_time": "03:00", "break_end_time": "04:00"},
)


def ensure_default_shifts(session: Session) -> int:
    """Create the standard three-shift roster in development when no shift exists."""
    if settings.app_env != "dev":
        return 0
    if session.scalar(select(Shift.id).limit(1)) is not None:
        return 0
    for values in DEFAULT_SHIFTS:
        session.add(Shift(**values, is_active=True, meal_price=Decimal("0.00")))
    session.commit()
    logger.info("[BOOTSTRAP] Created %s default shifts", len(DEFAULT_SHIFTS))
    return len(DEFAULT_SHIFTS)


def ensure_seed_data(session: Session) -> None:
    get_or_create_settings_record(session)
    ensure_default_admin(session)
    ensure_default_shifts(session)

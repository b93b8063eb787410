"""Ordering settings helpers."""

from __future__ import annotations

import logging
from datetime import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from mealshift.models.ordering_setting import CUTOFF_MODES, OrderingSetting

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID: int = 1


def parse_hhmm_time(value: str) -> time:
    """Parse time from HH:MM format string."""
    parsed: time = time.fromisoformat(value)
    return time(hour=parsed.hour, minute=parsed.minute)


def parse_orderable_days(value: str) -> frozenset[int]:
    """Parse CSV weekday numbers (0=Sunday ... 6=Saturday), ignoring junk."""
    days: set[int] = set()
    for part in str(value or "").split(","):
        part = part.strip()
        if part.isdigit() and 0 <= int(part) <= 6:
            days.add(int(part))
    return frozenset(days)


class CutoffSettings(BaseModel):
    """Immutable snapshot of the ordering policy passed into every policy call."""

    model_config = ConfigDict(frozen=True)

    cutoff_mode: str = "PER_SHIFT"
    cutoff_days: int = Field(default=0, ge=0, le=30)
    cutoff_hours: int = Field(default=6, ge=0, le=23)
    cancel_cutoff_extra_hours: int = Field(default=0, ge=0, le=168)
    max_order_days_ahead: int = Field(default=7, ge=0, le=365)
    weekly_cutoff_day: int = Field(default=5, ge=0, le=6)
    weekly_cutoff_hour: int = Field(default=17, ge=0, le=23)
    weekly_cutoff_minute: int = Field(default=0, ge=0, le=59)
    orderable_days: frozenset[int] = frozenset({1, 2, 3, 4, 5, 6})
    max_weeks_ahead: int = Field(default=1, ge=1, le=52)
    blacklist_strikes: int = Field(default=3, ge=1, le=10)
    blacklist_duration: int = Field(default=7, ge=1)
    enforce_canteen_checkin: bool = False

    @field_validator("cutoff_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> str:
        normalized = str(value or "").strip().upper().replace("-", "_")
        if normalized not in CUTOFF_MODES:
            raise ValueError(f"cutoff_mode must be one of {', '.join(CUTOFF_MODES)}")
        return normalized

    @field_validator("orderable_days", mode="before")
    @classmethod
    def _parse_days(cls, value: Any) -> frozenset[int]:
        if isinstance(value, str):
            return parse_orderable_days(value)
        return frozenset(int(day) for day in value)

    @property
    def is_weekly(self) -> bool:
        return self.cutoff_mode == "WEEKLY"

    @classmethod
    def from_record(cls, record: OrderingSetting) -> "CutoffSettings":
        return cls(
            cutoff_mode=record.cutoff_mode,
            cutoff_days=record.cutoff_days,
            cutoff_hours=record.cutoff_hours,
            cancel_cutoff_extra_hours=record.cancel_cutoff_extra_hours,
            max_order_days_ahead=record.max_order_days_ahead,
            weekly_cutoff_day=record.weekly_cutoff_day,
            weekly_cutoff_hour=record.weekly_cutoff_hour,
            weekly_cutoff_minute=record.weekly_cutoff_minute,
            orderable_days=record.orderable_days,
            max_weeks_ahead=record.max_weeks_ahead,
            blacklist_strikes=record.blacklist_strikes,
            blacklist_duration=record.blacklist_duration,
            enforce_canteen_checkin=record.enforce_canteen_checkin,
        )


def get_or_create_settings_record(db: Session) -> OrderingSetting:
    """Return the singleton settings row, creating defaults when missing."""
    record: OrderingSetting | None = db.get(OrderingSetting, SETTINGS_ROW_ID)
    if record is None:
        record = OrderingSetting(id=SETTINGS_ROW_ID)
        db.add(record)
        db.commit()
        db.refresh(record)
        logger.info("[SETTINGS] Default ordering settings created")
    return record


def load_cutoff_settings(db: Session) -> CutoffSettings:
    """Read the singleton settings row into an immutable value object."""
    return CutoffSettings.from_record(get_or_create_settings_record(db))


def save_cutoff_settings(db: Session, new_settings: CutoffSettings) -> OrderingSetting:
    """Persist a validated settings snapshot into the singleton row."""
    record = get_or_create_settings_record(db)
    for field_name, value in new_settings.model_dump().items():
        if field_name == "orderable_days":
            value = ",".join(str(day) for day in sorted(value))
        setattr(record, field_name, value)
    db.commit()
    db.refresh(record)
    return record

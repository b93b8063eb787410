"""Ordering settings schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class OrderingSettingsPayload(BaseModel):
    """Full replacement of the ordering policy; ranges mirror the admin form."""

    cutoff_mode: str
    cutoff_days: int = Field(ge=0, le=30)
    cutoff_hours: int = Field(ge=0, le=23)
    cancel_cutoff_extra_hours: int = Field(default=0, ge=0, le=168)
    max_order_days_ahead: int = Field(ge=0, le=365)
    weekly_cutoff_day: int = Field(ge=0, le=6)
    weekly_cutoff_hour: int = Field(ge=0, le=23)
    weekly_cutoff_minute: int = Field(ge=0, le=59)
    orderable_days: list[int] = Field(min_length=1)
    max_weeks_ahead: int = Field(ge=1, le=52)
    blacklist_strikes: int = Field(ge=1, le=10)
    blacklist_duration: int = Field(ge=1)
    enforce_canteen_checkin: bool = False


class OrderingSettingsResponse(BaseModel):
    cutoff_mode: str
    cutoff_days: int
    cutoff_hours: int
    cancel_cutoff_extra_hours: int
    max_order_days_ahead: int
    weekly_cutoff_day: int
    weekly_cutoff_hour: int
    weekly_cutoff_minute: int
    orderable_days: str
    max_weeks_ahead: int
    blacklist_strikes: int
    blacklist_duration: int
    enforce_canteen_checkin: bool
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

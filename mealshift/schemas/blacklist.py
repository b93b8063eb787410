"""Blacklist and no-show schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BlacklistCreate(BaseModel):
    """Manual suspension; omit ``duration_days`` for an indefinite one."""

    external_id: str = Field(min_length=1)
    reason: str = ""
    duration_days: int | None = Field(default=None, ge=1)


class BlacklistResponse(BaseModel):
    id: int
    user_id: int
    reason: str
    start_date: datetime
    end_date: datetime | None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class BlacklistedUser(BaseModel):
    userId: int
    userName: str
    noShowCount: int


class NoShowRunResponse(BaseModel):
    processed: int
    blacklisted: list[BlacklistedUser]
    failed: int


class NoShowStatsResponse(BaseModel):
    date: str
    total: int
    pickedUp: int
    noShows: int
    pending: int
    pickupRate: float


class ExpireResponse(BaseModel):
    expired: int

"""Order API schemas."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class OrderCreate(BaseModel):
    """Reserve a meal; ``order_date`` is a local ``YYYY-MM-DD`` string."""

    order_date: str
    shift_id: int
    canteen_id: int | None = None


class BulkOrderCandidate(BaseModel):
    date: str
    shift_id: int


class BulkOrderCreate(BaseModel):
    orders: list[BulkOrderCandidate]
    canteen_id: int | None = None


class OrderCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class QrCheckin(BaseModel):
    qr_token: str = Field(min_length=1)
    canteen_id: int | None = None


class ManualCheckin(BaseModel):
    external_id: str = Field(min_length=1)
    canteen_id: int | None = None


class OrderResponse(BaseModel):
    id: int
    user_id: int
    shift_id: int
    canteen_id: int | None
    order_date: date
    ordered_at: datetime
    status: str
    qr_token: str
    meal_price: Decimal
    check_in_at: datetime | None = None
    checked_in_by: str | None = None
    cancelled_by: str | None = None
    cancel_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class OrderCreateResponse(BaseModel):
    order: OrderResponse
    qr_code: str


class QrCodeResponse(BaseModel):
    order_id: int
    qr_token: str
    qr_code: str


class OrderableDatesResponse(BaseModel):
    cutoff_mode: str
    dates: list[date]

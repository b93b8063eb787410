"""Order endpoints."""

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from mealshift.core.security import get_current_user, require_roles
from mealshift.db.session import get_db
from mealshift.models.user import User
from mealshift.schemas.order import (
    BulkOrderCreate,
    ManualCheckin,
    OrderableDatesResponse,
    OrderCancel,
    OrderCreate,
    OrderCreateResponse,
    OrderResponse,
    QrCheckin,
    QrCodeResponse,
)
from mealshift.services import bulk_order_service, checkin_service, order_service
from mealshift.services.clock import Clock, get_clock
from mealshift.services.cutoff_policy import CutoffPolicy
from mealshift.services.events import EventBroadcaster, get_broadcaster
from mealshift.services.qr_codec import QRCodec, get_qr_codec
from mealshift.services.rate_limiter import RateLimiter, get_rate_limiter
from mealshift.services.settings_service import load_cutoff_settings

router: APIRouter = APIRouter()

require_operator = require_roles("CANTEEN", "ADMIN")


@router.post("", response_model=OrderCreateResponse, status_code=201)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    events: EventBroadcaster = Depends(get_broadcaster),
    codec: QRCodec = Depends(get_qr_codec),
) -> OrderCreateResponse:
    created = order_service.create_order(
        db,
        user_id=current_user.id,
        order_date=payload.order_date,
        shift_id=payload.shift_id,
        canteen_id=payload.canteen_id,
        now=clock.now(),
        events=events,
        codec=codec,
    )
    return OrderCreateResponse(order=OrderResponse.model_validate(created.order), qr_code=created.qr_code)


@router.post("/bulk")
def create_bulk_orders(
    payload: BulkOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    events: EventBroadcaster = Depends(get_broadcaster),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> dict[str, Any]:
    limiter.check_api(current_user.id, "bulk")
    candidates = [bulk_order_service.BulkCandidate(item.date, item.shift_id) for item in payload.orders]
    return bulk_order_service.create_bulk_orders(
        db,
        user_id=current_user.id,
        candidates=candidates,
        canteen_id=payload.canteen_id,
        now=clock.now(),
        events=events,
    )


@router.get("/me", response_model=list[OrderResponse])
def my_orders(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[OrderResponse]:
    orders = order_service.list_user_orders(db, current_user.id, start=start, end=end)
    return [OrderResponse.model_validate(order) for order in orders]


@router.get("/orderable-dates", response_model=OrderableDatesResponse)
def orderable_dates(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
) -> OrderableDatesResponse:
    cutoff_settings = load_cutoff_settings(db)
    dates = CutoffPolicy(cutoff_settings).orderable_dates(clock.now())
    return OrderableDatesResponse(cutoff_mode=cutoff_settings.cutoff_mode, dates=dates)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    payload: OrderCancel | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    events: EventBroadcaster = Depends(get_broadcaster),
) -> OrderResponse:
    order = order_service.cancel_order(
        db,
        order_id=order_id,
        requester=current_user,
        now=clock.now(),
        reason=payload.reason if payload else None,
        events=events,
    )
    return OrderResponse.model_validate(order)


@router.get("/{order_id}/qrcode", response_model=QrCodeResponse)
def order_qrcode(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    codec: QRCodec = Depends(get_qr_codec),
) -> QrCodeResponse:
    qr = order_service.get_qr(db, order_id=order_id, requester=current_user, codec=codec)
    return QrCodeResponse(order_id=qr["orderId"], qr_token=qr["qrToken"], qr_code=qr["qrCode"])


@router.post("/checkin/qr", response_model=OrderResponse)
def checkin_by_qr(
    payload: QrCheckin,
    db: Session = Depends(get_db),
    operator: User = Depends(require_operator),
    clock: Clock = Depends(get_clock),
    events: EventBroadcaster = Depends(get_broadcaster),
) -> OrderResponse:
    order = checkin_service.check_in(
        db,
        qr_token=payload.qr_token,
        actor=operator,
        now=clock.now(),
        operator_canteen_id=payload.canteen_id,
        events=events,
    )
    return OrderResponse.model_validate(order)


@router.post("/checkin/manual", response_model=OrderResponse)
def checkin_manual(
    payload: ManualCheckin,
    db: Session = Depends(get_db),
    operator: User = Depends(require_operator),
    clock: Clock = Depends(get_clock),
    events: EventBroadcaster = Depends(get_broadcaster),
) -> OrderResponse:
    order = checkin_service.check_in_manual(
        db,
        external_id=payload.external_id,
        actor=operator,
        now=clock.now(),
        operator_canteen_id=payload.canteen_id,
        events=events,
    )
    return OrderResponse.model_validate(order)

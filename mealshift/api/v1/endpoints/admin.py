"""Administrative endpoints: no-show sweep, blacklists and ordering settings."""

import logging
from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from mealshift.core.security import require_roles
from mealshift.db.session import get_db
from mealshift.models.user import User
from mealshift.schemas.blacklist import (
    BlacklistCreate,
    BlacklistResponse,
    ExpireResponse,
    NoShowRunResponse,
    NoShowStatsResponse,
)
from mealshift.schemas.settings import OrderingSettingsPayload, OrderingSettingsResponse
from mealshift.services import blacklist_service, noshow_service
from mealshift.services.clock import Clock, get_clock
from mealshift.services.errors import OrderError, OrderErrorKind
from mealshift.services.events import EventBroadcaster, get_broadcaster
from mealshift.services.order_service import cancel_orders_beyond_date
from mealshift.services.settings_service import (
    CutoffSettings,
    get_or_create_settings_record,
    load_cutoff_settings,
    save_cutoff_settings,
)
from mealshift.services.user_service import get_user_by_external_id

router: APIRouter = APIRouter()
logger = logging.getLogger(__name__)

require_admin = require_roles("ADMIN")


@router.post("/noshow/run", response_model=NoShowRunResponse)
def run_noshow(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    clock: Clock = Depends(get_clock),
    events: EventBroadcaster = Depends(get_broadcaster),
) -> dict:
    logger.info("[NOSHOW] Manual sweep requested by %s", admin.external_id)
    return noshow_service.run_noshow_sweep(db, now=clock.now(), events=events)


@router.get("/noshow/stats", response_model=NoShowStatsResponse)
def noshow_stats(
    day: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
    clock: Clock = Depends(get_clock),
) -> dict:
    return noshow_service.noshow_stats(db, day or clock.today_date())


@router.post("/blacklists", response_model=BlacklistResponse, status_code=status.HTTP_201_CREATED)
def create_blacklist(
    payload: BlacklistCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    clock: Clock = Depends(get_clock),
    events: EventBroadcaster = Depends(get_broadcaster),
) -> BlacklistResponse:
    user = get_user_by_external_id(db, payload.external_id)
    if user is None:
        raise OrderError(OrderErrorKind.USER_NOT_FOUND, f"Employee {payload.external_id} not found")
    entry = blacklist_service.create_blacklist(
        db,
        user=user,
        reason=payload.reason,
        now=clock.now(),
        duration_days=payload.duration_days,
        actor=admin,
        broadcaster=events,
    )
    return BlacklistResponse.model_validate(entry)


@router.post("/blacklists/expire", response_model=ExpireResponse)
def expire_blacklists(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
    clock: Clock = Depends(get_clock),
) -> ExpireResponse:
    return ExpireResponse(expired=blacklist_service.expire_blacklists(db, clock.now()))


@router.post("/blacklists/{blacklist_id}/remove", response_model=BlacklistResponse)
def remove_blacklist(
    blacklist_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> BlacklistResponse:
    entry = blacklist_service.remove_blacklist(db, blacklist_id, actor=admin)
    return BlacklistResponse.model_validate(entry)


@router.get("/settings", response_model=OrderingSettingsResponse)
def get_settings(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
) -> OrderingSettingsResponse:
    return OrderingSettingsResponse.model_validate(get_or_create_settings_record(db))


@router.put("/settings", response_model=OrderingSettingsResponse)
def update_settings(
    payload: OrderingSettingsPayload,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    clock: Clock = Depends(get_clock),
    events: EventBroadcaster = Depends(get_broadcaster),
) -> OrderingSettingsResponse:
    try:
        new_settings = CutoffSettings(**payload.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False)) from exc

    previous = load_cutoff_settings(db)
    record = save_cutoff_settings(db, new_settings)
    logger.info("[SETTINGS] Ordering settings updated by %s (mode=%s)", admin.external_id, new_settings.cutoff_mode)

    if not new_settings.is_weekly and new_settings.max_order_days_ahead < previous.max_order_days_ahead:
        now = clock.now()
        last_valid = now.date() + timedelta(days=new_settings.max_order_days_ahead)
        cancel_orders_beyond_date(
            db,
            last_valid_date=last_valid,
            reason=f"Ordering window reduced to {new_settings.max_order_days_ahead} days",
            now=now,
            cancelled_by=admin.name,
            events=events,
        )
        db.refresh(record)
    return OrderingSettingsResponse.model_validate(record)

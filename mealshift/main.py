"""FastAPI entrypoint for the shift meal ordering service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mealshift.api.v1.api import api_router
from mealshift.core.config import settings
from mealshift.db import session as db_session
from mealshift.db.base import Base
from mealshift.db.seed import ensure_seed_data
from mealshift.services.errors import OrderError

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, debug=settings.debug)
app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(OrderError)
def order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    logger.info("[API] %s %s rejected: %s", request.method, request.url.path, exc.kind.value)
    headers = {"Retry-After": str(exc.details["retry_after"])} if "retry_after" in exc.details else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(bind=db_session.engine)
    with db_session.SessionLocal() as session:
        try:
            ensure_seed_data(session)
        except Exception:
            logger.exception("[BOOTSTRAP] Seed/bootstrap failed; continuing startup.")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}

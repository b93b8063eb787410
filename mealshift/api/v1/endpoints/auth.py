"""Authentication endpoints (API JWT)."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from mealshift.core.security import create_access_token, get_current_user
from mealshift.db.session import get_db
from mealshift.models.user import User
from mealshift.schemas.auth import AuthUserResponse, LoginRequest, TokenResponse
from mealshift.services.account_service import authenticate_user
from mealshift.services.rate_limiter import RateLimiter, get_rate_limiter

router: APIRouter = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> TokenResponse:
    client_ip = request.client.host if request.client else None
    limiter.check_login(payload.external_id, client_ip)
    user: User | None = authenticate_user(db, payload.external_id, payload.password)
    if user is None:
        limiter.record_login_failure(payload.external_id, client_ip)
        logger.info("[AUTH] Failed login for %s from %s", payload.external_id, client_ip)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect employee number or password")
    limiter.record_login_success(payload.external_id, client_ip)
    return TokenResponse(access_token=create_access_token(data={"sub": str(user.id), "role": user.role}))


@router.get("/me", response_model=AuthUserResponse)
def me(current_user: User = Depends(get_current_user)) -> AuthUserResponse:
    return AuthUserResponse.model_validate(current_user)

"""Schema exports."""

from mealshift.schemas.auth import AuthUserResponse, LoginRequest, TokenResponse
from mealshift.schemas.blacklist import BlacklistCreate, BlacklistResponse, NoShowRunResponse, NoShowStatsResponse
from mealshift.schemas.order import BulkOrderCreate, OrderCreate, OrderCreateResponse, OrderResponse
from mealshift.schemas.settings import OrderingSettingsPayload, OrderingSettingsResponse

__all__ = [
    "AuthUserResponse",
    "BlacklistCreate",
    "BlacklistResponse",
    "BulkOrderCreate",
    "LoginRequest",
    "NoShowRunResponse",
    "NoShowStatsResponse",
    "OrderCreate",
    "OrderCreateResponse",
    "OrderResponse",
    "OrderingSettingsPayload",
    "OrderingSettingsResponse",
    "TokenResponse",
]

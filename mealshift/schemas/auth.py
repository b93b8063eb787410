"""Authentication-related request and response schemas."""

from pydantic import BaseModel, ConfigDict


class LoginRequest(BaseModel):
    """Payload for user login; ``external_id`` is the employee number."""

    external_id: str
    password: str


class TokenResponse(BaseModel):
    """JWT response payload."""

    access_token: str
    token_type: str = "bearer"


class AuthUserResponse(BaseModel):
    id: int
    external_id: str
    name: str
    role: str

    model_config = ConfigDict(from_attributes=True)

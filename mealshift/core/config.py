"""Application configuration."""

from os import getenv

from pydantic import BaseModel


class Settings(BaseModel):
    """Runtime settings for the application."""

    app_name: str = "mealshift API"
    app_env: str = getenv("APP_ENV", "dev")
    debug: bool = getenv("DEBUG", "0") == "1"
    database_url: str = getenv("DATABASE_URL", "sqlite:///./mealshift.db")
    jwt_secret_key: str = getenv("JWT_SECRET_KEY", "dev-only-change-me-to-a-long-random-secret")
    jwt_algorithm: str = getenv("JWT_ALGORITHM", "HS256")
    jwt_expire_minutes: int = int(getenv("JWT_EXPIRE_MINUTES", "60"))
    admin_external_id: str = getenv("ADMIN_EXTERNAL_ID", "admin")
    admin_pass: str = getenv("ADMIN_PASS", "")

    timezone: str = getenv("TIMEZONE", "Asia/Jakarta")
    ntp_offset_seconds: float = float(getenv("NTP_OFFSET_SECONDS", "0"))

    redis_url: str = getenv("REDIS_URL", "")
    rate_limiting_available: bool = getenv("RATE_LIMITING_AVAILABLE", "1") == "1"
    rate_limit_fail_open: bool = getenv("RATE_LIMIT_FAIL_OPEN", "1") == "1"
    login_max_attempts: int = int(getenv("LOGIN_MAX_ATTEMPTS", "5"))
    login_window_seconds: int = int(getenv("LOGIN_WINDOW_SECONDS", "300"))
    login_lockout_seconds: int = int(getenv("LOGIN_LOCKOUT_SECONDS", "60"))
    bulk_order_max_requests: int = int(getenv("BULK_ORDER_MAX_REQUESTS", "10"))
    bulk_order_window_seconds: int = int(getenv("BULK_ORDER_WINDOW_SECONDS", "60"))

    bulk_order_max_candidates: int = int(getenv("BULK_ORDER_MAX_CANDIDATES", "30"))
    noshow_lookback_days: int = int(getenv("NOSHOW_LOOKBACK_DAYS", "1"))
    celery_broker_url: str = getenv("CELERY_BROKER_URL", getenv("REDIS_URL", "redis://localhost:6379/0"))


settings: Settings = Settings()

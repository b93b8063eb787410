"""Account provisioning and login helpers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from mealshift.core.config import settings
from mealshift.core.security import get_password_hash, verify_password
from mealshift.models import User
from mealshift.services.user_service import get_user_by_external_id

logger = logging.getLogger(__name__)

DEV_ADMIN_PASSWORD: str = "admin123"


def ensure_default_admin(db: Session) -> bool:
    """Ensure the bootstrap admin account exists and is active.

    Returns:
        bool: True when the admin existed before this call.
    """
    external_id = settings.admin_external_id
    existing_admin = get_user_by_external_id(db, external_id)
    if existing_admin is not None:
        updates_applied = False
        if not existing_admin.is_active:
            existing_admin.is_active = True
            updates_applied = True
            logger.info("[BOOTSTRAP] Admin exists but was inactive; account re-activated.")
        if existing_admin.role != "ADMIN":
            logger.warning(
                "[BOOTSTRAP] Admin role auto-fix applied for %s (old=%s, new=ADMIN).",
                external_id,
                existing_admin.role,
            )
            existing_admin.role = "ADMIN"
            updates_applied = True
        if updates_applied:
            db.commit()
        logger.info("[BOOTSTRAP] Admin exists")
        return True

    password = settings.admin_pass or DEV_ADMIN_PASSWORD
    db.add(
        User(
            external_id=external_id,
            name="Administrator",
            password_hash=get_password_hash(password),
            role="ADMIN",
            is_active=True,
        )
    )
    db.commit()
    if not settings.admin_pass:
        logger.warning(
            "[SECURITY] Default admin account created: %s/%s. Set ADMIN_PASS and change it immediately.",
            external_id,
            DEV_ADMIN_PASSWORD,
        )
    else:
        logger.info("[BOOTSTRAP] Admin account %s created", external_id)
    return False


def authenticate_user(db: Session, external_id: str, password: str) -> User | None:
    user = get_user_by_external_id(db, external_id)
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user

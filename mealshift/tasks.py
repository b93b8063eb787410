"""Celery app and scheduled maintenance tasks.

The tasks are plain functions underneath and can be called directly.
"""

import logging

from celery import Celery
from celery.schedules import crontab

from mealshift.core.config import settings
from mealshift.db import session as db_session
from mealshift.services.blacklist_service import expire_blacklists
from mealshift.services.clock import get_clock
from mealshift.services.noshow_service import run_noshow_sweep

logger = logging.getLogger(__name__)

celery_app = Celery("mealshift")
celery_app.conf.broker_url = settings.celery_broker_url
celery_app.conf.timezone = settings.timezone
celery_app.conf.beat_schedule = {
    "noshow-sweep-hourly": {
        "task": "mealshift.tasks.noshow_sweep",
        "schedule": crontab(minute=5),
    },
    "blacklist-expiry-hourly": {
        "task": "mealshift.tasks.blacklist_expiry",
        "schedule": crontab(minute=5),
    },
}


@celery_app.task(name="mealshift.tasks.noshow_sweep")
def noshow_sweep() -> dict:
    with db_session.SessionLocal() as session:
        result = run_noshow_sweep(session, now=get_clock().now())
    logger.info("[SCHEDULER] No-show sweep finished: %s", result)
    return result


@celery_app.task(name="mealshift.tasks.blacklist_expiry")
def blacklist_expiry() -> int:
    with db_session.SessionLocal() as session:
        return expire_blacklists(session, get_clock().now())

"""Celery worker running the booking reconciliation sweep on a schedule.

Start with::

    celery -A app.worker worker --beat --loglevel=info
"""

import logging
from datetime import timedelta

from celery import Celery

from .config import settings
from .database import SessionLocal
from .lifecycle import utcnow
from .logging_config import configure_logging
from .reconciliation import sweep

configure_logging()
logger = logging.getLogger(__name__)

celery_app = Celery(
    "facility_booking",
    broker=settings.CELERY_BROKER_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_time_limit=300,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "reconcile-bookings": {
            "task": "app.worker.reconcile_bookings",
            "schedule": timedelta(minutes=settings.RECONCILE_INTERVAL_MINUTES),
            # queued runs older than one interval are dropped
            "options": {"expires": settings.RECONCILE_INTERVAL_MINUTES * 60},
        },
    },
)


@celery_app.task(name="app.worker.reconcile_bookings")
def reconcile_bookings() -> int:
    """Complete every upcoming booking whose slot has ended."""
    with SessionLocal() as db:
        count = sweep(db, utcnow)
    logger.info("Scheduled reconciliation done", extra={"count": count})
    return count

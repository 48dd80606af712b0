"""
Reconciliation sweep: mark elapsed ``upcoming`` bookings as ``completed``.

Each candidate is written with its own conditional update and commit, so one
failing row never aborts the others; a row that fails stays ``upcoming`` and
is picked up again by the next run.
"""

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .lifecycle import COMPLETED, UPCOMING, evaluate, to_naive_utc, utcnow

logger = logging.getLogger(__name__)


def find_candidates(db: Session, now: datetime) -> list[models.Booking]:
    # served by ix_bookings_status_end_at
    return (
        db.query(models.Booking)
        .filter(
            models.Booking.status == UPCOMING,
            models.Booking.end_at.isnot(None),
            models.Booking.end_at < now,
        )
        .order_by(models.Booking.end_at)
        .all()
    )


def complete_booking(db: Session, booking_id: str, now: datetime) -> bool:
    """
    Conditionally move one booking from ``upcoming`` to ``completed``.

    Returns False when the row was no longer ``upcoming`` (cancelled or already
    completed by a concurrent writer).
    """
    result = db.execute(
        update(models.Booking)
        .where(models.Booking.id == booking_id, models.Booking.status == UPCOMING)
        .values(status=COMPLETED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def sweep(db: Session, now_provider: Callable[[], datetime] = utcnow) -> int:
    """Apply the lifecycle evaluator to every candidate and persist transitions."""
    now = to_naive_utc(now_provider())
    candidates = [(b.id, evaluate(b, now)) for b in find_candidates(db, now)]

    transitioned = 0
    for booking_id, next_status in candidates:
        if next_status != COMPLETED:
            continue
        try:
            changed = complete_booking(db, booking_id, now)
        except SQLAlchemyError:
            db.rollback()
            logger.warning(
                "Failed to complete booking, will retry next sweep",
                exc_info=True,
                extra={"booking_id": booking_id},
            )
            continue
        if changed:
            transitioned += 1
            logger.info("Booking auto-completed", extra={"booking_id": booking_id, "status": COMPLETED})

    logger.info("Reconciliation sweep finished", extra={"count": transitioned})
    return transitioned

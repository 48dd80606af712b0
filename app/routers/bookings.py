import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pybreaker import CircuitBreakerError
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import schemas, models
from ..circuit_breaker import store_circuit_breaker
from ..config import settings
from ..deps import (
    get_db,
    get_current_user,
    require_roles,
    ensure_owner_or_admin,
    ensure_owner_or_staff,
)
from ..lifecycle import CANCELLED, UPCOMING, assert_transition, parse_slot_end, utcnow
from ..reconciliation import sweep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_booking_or_404(db: Session, booking_id: str) -> models.Booking:
    booking = db.query(models.Booking).filter(models.Booking.id == booking_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def slot_taken(db: Session, facility_id: str, day: str, time_slot: str) -> bool:
    return (
        db.query(models.Booking.id)
        .filter(
            models.Booking.facility_id == facility_id,
            models.Booking.date == day,
            models.Booking.time_slot == time_slot,
            models.Booking.status == UPCOMING,
        )
        .first()
        is not None
    )


def save_with_breaker(db: Session, *instances):
    """
    Commit ``instances`` through the store circuit breaker.

    An open circuit fails fast with 503 instead of hitting the store again.
    """

    @store_circuit_breaker
    def _save():
        try:
            for instance in instances:
                db.add(instance)
            db.commit()
        except Exception:
            db.rollback()
            raise
        for instance in instances:
            db.refresh(instance)

    try:
        _save()
    except CircuitBreakerError:
        raise HTTPException(
            status_code=503,
            detail="Booking store temporarily unavailable. Please try again later.",
        )


@router.post("/", response_model=schemas.BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_in: schemas.BookingCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Create a booking for a facility slot.

    The slot end is resolved once here and stored as ``end_at``; a slot that
    cannot be parsed leaves ``end_at`` empty and the booking is never
    auto-completed. Non-admin users may only book for themselves.

    Raises
    ------
    HTTPException
        - 403 if booking on behalf of another user without admin role.
        - 404 if the facility does not exist.
        - 409 if the slot is already held by an upcoming booking.
    """
    ensure_owner_or_admin(booking_in.user_id, current_user, "Not allowed to book for another user")

    facility = db.query(models.Facility).filter(models.Facility.id == booking_in.facility_id).first()
    if not facility:
        raise HTTPException(status_code=404, detail="Facility not found")

    day = booking_in.date.isoformat()
    if slot_taken(db, facility.id, day, booking_in.time_slot):
        raise HTTPException(status_code=409, detail="Time slot already booked")

    now = utcnow()
    booking = models.Booking(
        user_id=booking_in.user_id,
        facility_id=facility.id,
        date=day,
        time_slot=booking_in.time_slot,
        end_at=parse_slot_end(day, booking_in.time_slot, settings.BOOKING_TIMEZONE),
        status=UPCOMING,
        created_at=now,
        updated_at=now,
        user_name=booking_in.user_name,
        user_email=booking_in.user_email,
    )
    try:
        save_with_breaker(db, booking)
    except IntegrityError:
        # another request took the slot after the check above
        raise HTTPException(status_code=409, detail="Time slot already booked")
    if booking.end_at is None:
        logger.warning("Booking slot could not be parsed; it will not auto-complete",
                       extra={"booking_id": booking.id})
    logger.info("Booking created", extra={"booking_id": booking.id, "status": booking.status})
    return booking


@router.get("/", response_model=List[schemas.BookingOut])
def list_bookings(
    user_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    List a user's bookings, newest first.

    - ``user_id`` defaults to the current user.
    - Only admins and facility managers may list another user's bookings.
    """
    user_id = user_id or current_user.id
    ensure_owner_or_staff(user_id, current_user, "Not allowed to view these bookings")

    return (
        db.query(models.Booking)
        .filter(models.Booking.user_id == user_id)
        .order_by(models.Booking.created_at.desc())
        .all()
    )


@router.post("/reconcile", response_model=schemas.ReconcileResult)
def reconcile_bookings(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_roles("admin")),
):
    """
    Run the reconciliation sweep now. *(Admin-only)*

    The same sweep runs on a schedule from the worker; this endpoint only
    triggers it on demand.
    """
    return {"transitioned": sweep(db, utcnow)}


@router.get("/{booking_id}", response_model=schemas.BookingOut)
def get_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    booking = get_booking_or_404(db, booking_id)
    ensure_owner_or_staff(booking.user_id, current_user, "Not allowed to view this booking")
    return booking


@router.patch("/{booking_id}/status", response_model=schemas.BookingOut)
def update_booking_status(
    booking_id: str,
    status_in: schemas.BookingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Apply an explicit status change.

    - Owners may cancel their own upcoming bookings.
    - Admins may apply any transition the lifecycle allows.

    The write only succeeds if the booking still has the status it was read
    with, so a concurrent sweep or cancel cannot be silently overwritten.

    Raises
    ------
    HTTPException
        - 403 if the actor may not make this change.
        - 404 if the booking does not exist.
        - 409 if the booking changed status concurrently.
    InvalidTransition
        If the lifecycle does not allow the change (mapped to 400).
    """
    booking = get_booking_or_404(db, booking_id)
    target = status_in.status

    if current_user.role != "admin":
        ensure_owner_or_admin(booking.user_id, current_user, "Not allowed to update this booking")
        if target != CANCELLED:
            raise HTTPException(status_code=403, detail="Only cancellation is allowed")

    expected = booking.status
    assert_transition(expected, target)

    result = db.execute(
        update(models.Booking)
        .where(models.Booking.id == booking_id, models.Booking.status == expected)
        .values(status=target, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount != 1:
        raise HTTPException(status_code=409, detail="Booking status changed concurrently")

    db.refresh(booking)
    logger.info("Booking status updated", extra={"booking_id": booking.id, "status": booking.status})
    return booking

import datetime as dt
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db
from ..lifecycle import STANDARD_TIME_SLOTS, UPCOMING

router = APIRouter(prefix="/facilities", tags=["facilities"])

FEEDBACK_PAGE_SIZE = 20


def get_facility_or_404(db: Session, facility_id: str) -> models.Facility:
    facility = db.query(models.Facility).filter(models.Facility.id == facility_id).first()
    if not facility:
        raise HTTPException(status_code=404, detail="Facility not found")
    return facility


@router.get("/{facility_id}", response_model=schemas.FacilityDetail)
def get_facility(facility_id: str, db: Session = Depends(get_db)):
    """
    Retrieve a facility together with the venue it belongs to.
    """
    facility = get_facility_or_404(db, facility_id)
    return schemas.FacilityDetail(
        id=facility.id,
        name=facility.name,
        category=facility.category,
        capacity=facility.capacity,
        venue_id=facility.venue.id,
        venue_name=facility.venue.name,
        location=facility.venue.location,
    )


@router.get("/{facility_id}/timeslots", response_model=List[schemas.TimeSlotOut])
def get_time_slots(facility_id: str, date: dt.date, db: Session = Depends(get_db)):
    """
    List the standard slots for a date, marking those held by an upcoming booking.
    """
    get_facility_or_404(db, facility_id)
    taken = {
        row.time_slot
        for row in db.query(models.Booking.time_slot).filter(
            models.Booking.facility_id == facility_id,
            models.Booking.date == date.isoformat(),
            models.Booking.status == UPCOMING,
        )
    }
    return [
        schemas.TimeSlotOut(id=f"slot-{i}", time=slot, available=slot not in taken)
        for i, slot in enumerate(STANDARD_TIME_SLOTS)
    ]


@router.get("/{facility_id}/feedback", response_model=List[schemas.FeedbackOut])
def list_facility_feedback(facility_id: str, db: Session = Depends(get_db)):
    get_facility_or_404(db, facility_id)
    return (
        db.query(models.Feedback)
        .filter(models.Feedback.facility_id == facility_id)
        .order_by(models.Feedback.created_at.desc())
        .limit(FEEDBACK_PAGE_SIZE)
        .all()
    )

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, get_current_user, ensure_owner_or_admin, ensure_owner_or_staff
from ..lifecycle import CANCELLED, utcnow
from .bookings import get_booking_or_404, save_with_breaker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feedback", tags=["feedback"])


def build_ticket(booking: models.Booking, issue: schemas.IssueDetails, now) -> models.Ticket:
    return models.Ticket(
        booking_id=booking.id,
        facility_id=booking.facility_id,
        user_name=booking.user_name,
        user_email=booking.user_email,
        category=issue.category,
        severity=issue.severity,
        description=issue.description,
        preferred_action=issue.preferred_action,
        photo_url=issue.photo_url,
        status=issue.status,
        created_at=now,
        updated_at=now,
    )


@router.post("/", response_model=schemas.FeedbackOut, status_code=status.HTTP_201_CREATED)
def submit_feedback(
    feedback_in: schemas.FeedbackCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Submit feedback for a booking.

    Facility and contact fields are copied from the booking. When an issue is
    reported a maintenance ticket is created in the same commit, with status
    ``open`` unless the issue carries another initial status.

    Raises
    ------
    HTTPException
        - 400 if the booking was cancelled.
        - 403 if the booking belongs to another user (admins excepted).
        - 404 if the booking does not exist.
        - 409 if feedback was already submitted for the booking.
    """
    booking = get_booking_or_404(db, feedback_in.booking_id)
    ensure_owner_or_admin(booking.user_id, current_user, "Not allowed to review this booking")

    if booking.status == CANCELLED:
        raise HTTPException(status_code=400, detail="Cannot give feedback on a cancelled booking")

    existing = db.query(models.Feedback).filter(models.Feedback.booking_id == booking.id).first()
    if existing:
        raise HTTPException(status_code=409, detail="Feedback already submitted for this booking")

    now = utcnow()
    # a ticket needs both the flag and the details
    issue = feedback_in.issue_details if feedback_in.has_issue else None
    feedback = models.Feedback(
        booking_id=booking.id,
        facility_id=booking.facility_id,
        user_name=booking.user_name,
        rating=feedback_in.rating,
        comment=feedback_in.comment or "",
        has_issue=feedback_in.has_issue,
        issue_category=issue.category if issue else None,
        issue_severity=issue.severity if issue else None,
        issue_description=issue.description if issue else None,
        created_at=now,
        updated_at=now,
    )

    ticket = None
    records = [feedback]
    if issue is not None:
        ticket = build_ticket(booking, issue, now)
        # ids are assigned up front so feedback can point at its ticket
        ticket.id = models.new_id()
        feedback.ticket_id = ticket.id
        records.append(ticket)

    try:
        save_with_breaker(db, *records)
    except IntegrityError:
        # lost a race with a concurrent submission for the same booking
        raise HTTPException(status_code=409, detail="Feedback already submitted for this booking")

    if ticket is not None:
        logger.info("Maintenance ticket opened",
                    extra={"ticket_id": ticket.id, "booking_id": booking.id, "status": ticket.status})

    logger.info("Feedback submitted", extra={"feedback_id": feedback.id, "booking_id": booking.id})
    return feedback


@router.get("/by-booking/{booking_id}", response_model=schemas.FeedbackOut)
def get_feedback_for_booking(
    booking_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    booking = get_booking_or_404(db, booking_id)
    ensure_owner_or_staff(booking.user_id, current_user, "Not allowed to view this feedback")
    feedback = db.query(models.Feedback).filter(models.Feedback.booking_id == booking_id).first()
    if not feedback:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return feedback


@router.put("/{feedback_id}", response_model=schemas.FeedbackOut)
def update_feedback(
    feedback_id: str,
    feedback_update: schemas.FeedbackUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Edit the rating or comment of submitted feedback.

    Only the booking owner or an admin may edit. Issue details and any ticket
    already raised are left untouched.
    """
    feedback = db.query(models.Feedback).filter(models.Feedback.id == feedback_id).first()
    if not feedback:
        raise HTTPException(status_code=404, detail="Feedback not found")
    ensure_owner_or_admin(feedback.booking.user_id, current_user, "Not allowed to update this feedback")

    data = feedback_update.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in data.items():
        setattr(feedback, field, value)
    feedback.updated_at = utcnow()
    db.commit()
    db.refresh(feedback)
    return feedback

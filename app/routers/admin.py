import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas, models
from ..deps import get_db, require_roles, STAFF_ROLES
from ..lifecycle import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/tickets", response_model=List[schemas.TicketOut])
def list_tickets(
    status: Literal["all", "open", "in-progress", "resolved"] = "all",
    db: Session = Depends(get_db),
    _: models.User = Depends(require_roles(*STAFF_ROLES)),
):
    """
    List maintenance tickets, newest first. *(Admin or Facility Manager)*

    ``status`` narrows the list to one ticket status; ``all`` returns every ticket.
    """
    query = db.query(models.Ticket)
    if status != "all":
        query = query.filter(models.Ticket.status == status)
    return query.order_by(models.Ticket.created_at.desc()).all()


@router.patch("/tickets/{ticket_id}", response_model=schemas.TicketOut)
def update_ticket_status(
    ticket_id: str,
    status_in: schemas.TicketStatusUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_roles(*STAFF_ROLES)),
):
    """
    Set a ticket's status. *(Admin or Facility Manager)*

    Any of ``open``, ``in-progress`` and ``resolved`` may follow any other, so a
    resolved ticket can be reopened.
    """
    ticket = db.query(models.Ticket).filter(models.Ticket.id == ticket_id).first()
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")

    ticket.status = status_in.status
    ticket.updated_at = utcnow()
    db.commit()
    db.refresh(ticket)
    logger.info("Ticket status updated", extra={"ticket_id": ticket.id, "status": ticket.status})
    return ticket

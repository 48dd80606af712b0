import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from .lifecycle import UPCOMING, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default="regular")  # admin, regular, facility_manager


class Venue(Base):
    __tablename__ = "venues"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, unique=True, nullable=False)
    location = Column(String, nullable=False)

    facilities = relationship(
        "Facility", back_populates="venue", order_by="Facility.name"
    )


class Facility(Base):
    __tablename__ = "facilities"

    id = Column(String, primary_key=True, default=new_id)
    venue_id = Column(String, ForeignKey("venues.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default="sports")  # sports, study, ...
    capacity = Column(Integer, nullable=False)

    venue = relationship("Venue", back_populates="facilities")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # reconciliation candidates: status = upcoming AND end_at < now
        Index("ix_bookings_status_end_at", "status", "end_at"),
        Index("ix_bookings_user_created", "user_id", "created_at"),
        Index("ix_bookings_facility_date", "facility_id", "date"),
        # one upcoming booking per facility slot; cancelling releases it
        Index(
            "uq_bookings_upcoming_slot",
            "facility_id",
            "date",
            "time_slot",
            unique=True,
            sqlite_where=text("status = 'upcoming'"),
            postgresql_where=text("status = 'upcoming'"),
        ),
    )

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, nullable=False)
    facility_id = Column(String, ForeignKey("facilities.id"), nullable=False)
    date = Column(String, nullable=False)
    time_slot = Column(String, nullable=False)
    # computed once at creation from date + slot end; NULL when unparseable
    end_at = Column(DateTime, nullable=True)
    status = Column(String, nullable=False, default=UPCOMING)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    user_name = Column(String, nullable=False)
    user_email = Column(String, nullable=False)

    facility = relationship("Facility")
    feedback = relationship("Feedback", back_populates="booking", uselist=False)


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        Index("ix_feedback_facility_created", "facility_id", "created_at"),
    )

    id = Column(String, primary_key=True, default=new_id)
    # one feedback per booking
    booking_id = Column(String, ForeignKey("bookings.id"), unique=True, nullable=False)
    facility_id = Column(String, nullable=False)
    user_name = Column(String, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")
    has_issue = Column(Boolean, nullable=False, default=False)
    issue_category = Column(String, nullable=True)
    issue_severity = Column(String, nullable=True)
    issue_description = Column(Text, nullable=True)
    ticket_id = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    booking = relationship("Booking", back_populates="feedback")


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        Index("ix_tickets_status_created", "status", "created_at"),
    )

    id = Column(String, primary_key=True, default=new_id)
    booking_id = Column(String, ForeignKey("bookings.id"), nullable=False, index=True)
    facility_id = Column(String, nullable=False)
    user_name = Column(String, nullable=False)
    user_email = Column(String, nullable=False)
    category = Column(String, nullable=True)
    severity = Column(String, nullable=False, default="low")
    description = Column(Text, nullable=False)
    preferred_action = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    status = Column(String, nullable=False, default="open")  # open, in-progress, resolved
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

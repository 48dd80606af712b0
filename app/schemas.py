import datetime as dt
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

BookingStatus = Literal["upcoming", "completed", "cancelled"]
TicketStatus = Literal["open", "in-progress", "resolved"]
Severity = Literal["low", "medium", "high"]


# ----- Users -----
class UserBase(BaseModel):
    name: str
    username: str
    email: EmailStr
    role: Literal["admin", "regular", "facility_manager"] = "regular"


class UserCreate(UserBase):
    password: str


class UserOut(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: str


# ----- Venues / facilities -----
class FacilityBase(BaseModel):
    name: NonEmptyStr
    category: NonEmptyStr = "sports"
    capacity: int = Field(gt=0)


class FacilityCreate(FacilityBase):
    pass


class FacilityOut(FacilityBase):
    model_config = ConfigDict(from_attributes=True)

    id: str


class FacilityDetail(FacilityOut):
    venue_id: str
    venue_name: str
    location: str


class VenueCreate(BaseModel):
    name: NonEmptyStr
    location: NonEmptyStr


class VenueOut(VenueCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    facilities: List[FacilityOut] = []


class TimeSlotOut(BaseModel):
    id: str
    time: str
    available: bool


# ----- Bookings -----
class BookingCreate(BaseModel):
    user_id: NonEmptyStr
    facility_id: NonEmptyStr
    date: dt.date
    time_slot: NonEmptyStr
    user_name: NonEmptyStr
    user_email: EmailStr


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    facility_id: str
    date: str
    time_slot: str
    end_at: Optional[dt.datetime] = None
    status: BookingStatus
    created_at: dt.datetime
    updated_at: dt.datetime
    user_name: str
    user_email: str


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class ReconcileResult(BaseModel):
    transitioned: int


# ----- Feedback -----
class IssueDetails(BaseModel):
    category: Optional[str] = None
    severity: Severity = "low"
    description: NonEmptyStr
    preferred_action: Optional[str] = None
    photo_url: Optional[str] = None
    # initial ticket status, "open" unless given
    status: TicketStatus = "open"


class FeedbackCreate(BaseModel):
    booking_id: NonEmptyStr
    rating: int = Field(ge=1, le=5)
    comment: str = ""
    has_issue: bool = False
    issue_details: Optional[IssueDetails] = None


class FeedbackUpdate(BaseModel):
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = None


class FeedbackOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    facility_id: str
    user_name: str
    rating: int
    comment: str
    has_issue: bool
    issue_category: Optional[str] = None
    issue_severity: Optional[str] = None
    issue_description: Optional[str] = None
    ticket_id: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime


# ----- Tickets -----
class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    facility_id: str
    user_name: str
    user_email: str
    category: Optional[str] = None
    severity: str
    description: str
    preferred_action: Optional[str] = None
    photo_url: Optional[str] = None
    status: TicketStatus
    created_at: dt.datetime
    updated_at: dt.datetime


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


# ----- Auth -----
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    username: Optional[str] = None
    role: Optional[str] = None

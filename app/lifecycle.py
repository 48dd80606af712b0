"""Booking lifecycle: statuses, slot end parsing, evaluator and transition table.

Everything here is pure. Instants are naive UTC datetimes, matching what the
``bookings`` table stores.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

UPCOMING = "upcoming"
COMPLETED = "completed"
CANCELLED = "cancelled"

BOOKING_STATUSES = (UPCOMING, COMPLETED, CANCELLED)

BOOKING_TRANSITIONS = {
    UPCOMING: {COMPLETED, CANCELLED},
    COMPLETED: set(),
    CANCELLED: set(),
}

TICKET_STATUSES = ("open", "in-progress", "resolved")

# Slots offered for every facility, e.g. "09:00 - 10:00"
STANDARD_TIME_SLOTS = (
    "09:00 - 10:00",
    "10:00 - 11:00",
    "11:00 - 12:00",
    "12:00 - 13:00",
    "14:00 - 15:00",
    "15:00 - 16:00",
    "16:00 - 17:00",
    "20:00 - 21:00",
)

_SLOT_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*[-–]\s*(\d{1,2}):(\d{2})\s*$")


class InvalidTransition(ValueError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid booking transition: {current} -> {target}")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _clock(hour: str, minute: str) -> Optional[tuple[int, int]]:
    h, m = int(hour), int(minute)
    if m > 59 or h > 24 or (h == 24 and m != 0):
        return None
    return h, m


def parse_slot_end(day: str, time_slot: str, tz_name: str = "UTC") -> Optional[datetime]:
    """
    Compute the absolute end of a booked slot.

    ``day`` is an ISO date (``2025-01-10``) and ``time_slot`` a range such as
    ``"09:00 - 10:00"``. The slot times are read in ``tz_name`` and the result
    is returned as naive UTC. An end at or before the start (``"23:00 - 00:00"``)
    or ``24:00`` falls on the following day.

    Returns ``None`` when either value cannot be parsed; such bookings are never
    auto-completed.
    """
    if not day or not time_slot:
        return None
    try:
        base = date.fromisoformat(day.strip())
    except (TypeError, ValueError):
        return None

    match = _SLOT_RE.match(time_slot)
    if not match:
        return None
    start = _clock(match.group(1), match.group(2))
    end = _clock(match.group(3), match.group(4))
    if start is None or end is None:
        return None

    end_day = base
    end_h, end_m = end
    if end_h == 24:
        end_h = 0
        end_day = base + timedelta(days=1)
    elif end <= start:
        end_day = base + timedelta(days=1)

    tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    local_end = datetime.combine(end_day, time(end_h, end_m), tzinfo=tz)
    return to_naive_utc(local_end)


def evaluate(booking, now: datetime) -> str:
    """
    Return the status ``booking`` should have at ``now``.

    Only an ``upcoming`` booking with a known ``end_at`` strictly before ``now``
    becomes ``completed``; every other booking keeps its current status.
    """
    if booking.status != UPCOMING or booking.end_at is None:
        return booking.status
    if booking.end_at < to_naive_utc(now):
        return COMPLETED
    return booking.status


def is_transition_allowed(current: str, target: str) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, set())


def assert_transition(current: str, target: str) -> None:
    if not is_transition_allowed(current, target):
        raise InvalidTransition(current, target)

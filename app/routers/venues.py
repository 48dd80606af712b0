from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from .. import schemas, models
from ..cache import TTLCache
from ..config import settings
from ..deps import get_db, require_roles

router = APIRouter(prefix="/venues", tags=["venues"])

# Venue listings change rarely; writes below invalidate it
venue_cache = TTLCache(settings.VENUE_CACHE_TTL_SECONDS)

ALL_VENUES = "all"


def load_venues(db: Session) -> list[dict]:
    venues = (
        db.query(models.Venue)
        .options(selectinload(models.Venue.facilities))
        .order_by(models.Venue.name)
        .all()
    )
    return [schemas.VenueOut.model_validate(v).model_dump() for v in venues]


def cached_venues(db: Session) -> list[dict]:
    return venue_cache.get_or_load(ALL_VENUES, lambda: load_venues(db))


def filter_venues(venues: list[dict], search: str = "", category: str = "all") -> list[dict]:
    """
    Keep facilities matching ``category`` and a case-insensitive ``search`` over
    facility name, venue name and location. Venues left empty are dropped.
    """
    q = search.strip().lower()
    filtered = []
    for venue in venues:
        facilities = [
            f for f in venue["facilities"]
            if (category == "all" or f["category"] == category)
            and (not q or q in f"{f['name']} {venue['name']} {venue['location']}".lower())
        ]
        if facilities:
            filtered.append({**venue, "facilities": facilities})
    return filtered


@router.get("/", response_model=List[schemas.VenueOut])
def list_venues(
    search: str = "",
    category: str = "all",
    db: Session = Depends(get_db),
):
    """
    List venues with their facilities.

    Parameters
    ----------
    search : str, optional
        Case-insensitive text matched against facility name, venue name and location.
    category : str, optional
        Facility category such as ``sports`` or ``study``; ``all`` disables the filter.
    """
    venues = cached_venues(db)
    if not search and category == "all":
        return venues
    return filter_venues(venues, search, category)


@router.post("/", response_model=schemas.VenueOut, status_code=201)
def create_venue(
    venue_in: schemas.VenueCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_roles("admin", "facility_manager")),
):
    """
    Create a venue. *(Admin or Facility Manager)*

    Raises
    ------
    HTTPException
        - 400 if a venue with the same name already exists.
    """
    existing = db.query(models.Venue).filter(models.Venue.name == venue_in.name).first()
    if existing:
        raise HTTPException(status_code=400, detail="Venue name already exists")
    venue = models.Venue(**venue_in.model_dump())
    db.add(venue)
    db.commit()
    db.refresh(venue)
    venue_cache.invalidate()
    return venue


@router.post("/{venue_id}/facilities", response_model=schemas.FacilityOut, status_code=201)
def add_facility(
    venue_id: str,
    facility_in: schemas.FacilityCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_roles("admin", "facility_manager")),
):
    """Add a bookable facility to a venue. *(Admin or Facility Manager)*"""
    venue = db.query(models.Venue).filter(models.Venue.id == venue_id).first()
    if not venue:
        raise HTTPException(status_code=404, detail="Venue not found")
    facility = models.Facility(venue_id=venue.id, **facility_in.model_dump())
    db.add(facility)
    db.commit()
    db.refresh(facility)
    venue_cache.invalidate()
    return facility

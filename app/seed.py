from sqlalchemy.orm import Session

from . import models

DEMO_VENUES = [
    {
        "id": "venue-1",
        "name": "Pusat Sukan UPM",
        "location": "UPM Serdang",
        "facilities": [
            {"id": "fac-1", "name": "Badminton Court", "category": "sports", "capacity": 4},
            {"id": "fac-2", "name": "Futsal Court", "category": "sports", "capacity": 10},
        ],
    },
    {
        "id": "venue-2",
        "name": "Perpustakaan Sultan Abdul Samad",
        "location": "UPM Serdang",
        "facilities": [
            {"id": "fac-3", "name": "Discussion Room A", "category": "study", "capacity": 8},
        ],
    },
]


def seed_demo_venues(db: Session) -> int:
    """Insert the demo venues when no venue exists yet. Returns venues added."""
    if db.query(models.Venue.id).first() is not None:
        return 0
    for data in DEMO_VENUES:
        venue = models.Venue(id=data["id"], name=data["name"], location=data["location"])
        db.add(venue)
        for fac in data["facilities"]:
            db.add(models.Facility(venue_id=venue.id, **fac))
    db.commit()
    return len(DEMO_VENUES)

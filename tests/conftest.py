"""
Pytest configuration and shared fixtures for testing the Facility Booking API.
"""
import os

# Settings are read at import time; keep the app off the real database.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.main import app
from app.deps import get_db, get_password_hash
from app.circuit_breaker import store_circuit_breaker
from app.lifecycle import parse_slot_end, utcnow
from app.routers.venues import venue_cache
from app import models


# Use an in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with the test database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    venue_cache.invalidate()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    venue_cache.invalidate()


def _make_user(db_session, name, username, email, password, role):
    user = models.User(
        name=name,
        username=username,
        email=email,
        hashed_password=get_password_hash(password),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, "Admin User", "admin", "admin@example.com", "adminpass123", "admin")


@pytest.fixture
def regular_user(db_session):
    return _make_user(
        db_session, "Regular User", "regularuser", "regular@example.com", "regularpass123", "regular"
    )


@pytest.fixture
def other_user(db_session):
    return _make_user(
        db_session, "Other User", "otheruser", "other@example.com", "otherpass123", "regular"
    )


@pytest.fixture
def facility_manager(db_session):
    return _make_user(
        db_session,
        "Facility Manager",
        "facilitymanager",
        "facility@example.com",
        "facilitypass123",
        "facility_manager",
    )


def _login(client, username, password):
    response = client.post("/users/login", data={"username": username, "password": password})
    return response.json()["access_token"]


@pytest.fixture
def admin_token(client, admin_user):
    return _login(client, "admin", "adminpass123")


@pytest.fixture
def regular_token(client, regular_user):
    return _login(client, "regularuser", "regularpass123")


@pytest.fixture
def other_token(client, other_user):
    return _login(client, "otheruser", "otherpass123")


@pytest.fixture
def facility_token(client, facility_manager):
    return _login(client, "facilitymanager", "facilitypass123")


@pytest.fixture
def sample_venue(db_session):
    """
    A venue with a sports and a study facility.
    """
    venue = models.Venue(id="venue-1", name="Pusat Sukan UPM", location="UPM Serdang")
    db_session.add(venue)
    db_session.add_all([
        models.Facility(id="fac-1", venue_id=venue.id, name="Badminton Court", category="sports", capacity=4),
        models.Facility(id="fac-3", venue_id=venue.id, name="Discussion Room A", category="study", capacity=8),
    ])
    db_session.commit()
    db_session.refresh(venue)
    return venue


@pytest.fixture
def sample_facility(db_session, sample_venue):
    return db_session.get(models.Facility, "fac-1")


@pytest.fixture
def make_booking(db_session, regular_user, sample_facility):
    """
    Factory inserting a booking directly, end_at derived the same way the API does.
    """
    def _make(date="2025-01-10", time_slot="09:00 - 10:00", status="upcoming", user=None,
              created_at=None):
        owner = user or regular_user
        created = created_at or datetime(2025, 1, 1, 8, 0, 0)
        booking = models.Booking(
            user_id=owner.id,
            facility_id=sample_facility.id,
            date=date,
            time_slot=time_slot,
            end_at=parse_slot_end(date, time_slot),
            status=status,
            created_at=created,
            updated_at=created,
            user_name=owner.name,
            user_email=owner.email,
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking

    return _make


@pytest.fixture
def future_booking(make_booking):
    day = (utcnow() + timedelta(days=7)).date().isoformat()
    return make_booking(date=day, time_slot="10:00 - 11:00")


@pytest.fixture
def past_booking(make_booking):
    return make_booking(date="2025-01-10", time_slot="09:00 - 10:00")


def get_auth_header(token: str) -> dict:
    """
    Helper function to create authorization header.
    """
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def reset_store_breaker():
    yield
    store_circuit_breaker.close()

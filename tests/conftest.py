"""
Pytest configuration and shared fixtures for testing the Society Management API.
"""
import os
import tempfile

# Configure the app before it is imported: throwaway database, no rate
# limiting, uploads in a temp dir.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="society-uploads-"))

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from society.config import settings
from society.database import Base
from society.main import app
from society.deps import get_db, get_password_hash
from society import models


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

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """
    Point the image store at a per-test directory.
    """
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


def make_user(db_session, name, email, password, role="resident", block="A", flat="101"):
    user = models.User(
        name=name,
        email=email,
        hashed_password=get_password_hash(password),
        role=role,
        block=block,
        flat=flat,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    """
    Create an admin user for testing.
    """
    return make_user(db_session, "Admin User", "admin@example.com", "adminpass123", role="admin")


@pytest.fixture
def resident(db_session):
    """
    Create a resident for testing.
    """
    return make_user(db_session, "Riya Resident", "riya@example.com", "residentpass123", block="B", flat="204")


@pytest.fixture
def other_resident(db_session):
    """
    Create a second resident, used for ownership checks.
    """
    return make_user(db_session, "Omar Other", "omar@example.com", "otherpass123", block="C", flat="310")


def login(client, email, password):
    response = client.post("/auth/login", json={"email": email, "password": password})
    return response.json()["token"]


@pytest.fixture
def admin_token(client, admin_user):
    """
    Get an admin authentication token.
    """
    return login(client, "admin@example.com", "adminpass123")


@pytest.fixture
def resident_token(client, resident):
    """
    Get a resident authentication token.
    """
    return login(client, "riya@example.com", "residentpass123")


@pytest.fixture
def other_token(client, other_resident):
    """
    Get the second resident's authentication token.
    """
    return login(client, "omar@example.com", "otherpass123")


@pytest.fixture
def sample_booking(db_session, resident):
    """
    Create a pending booking owned by the resident.
    """
    booking = models.Booking(
        facility="Clubhouse",
        user_id=resident.id,
        date=datetime.utcnow() + timedelta(days=3),
        from_time="18:00",
        to_time="21:00",
        status="pending",
    )
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)
    return booking


@pytest.fixture
def sample_notice(db_session, admin_user):
    """
    Create a broadcast notice posted by the admin.
    """
    notice = models.Notice(
        title="Annual general meeting",
        body="The AGM will be held in the clubhouse.",
        author_id=admin_user.id,
    )
    db_session.add(notice)
    db_session.commit()
    db_session.refresh(notice)
    return notice


def make_poll(db_session, notice, end_date, options=("Saturday", "Sunday", "Monday")):
    poll = models.Poll(
        question="Which day suits you?",
        end_date=end_date,
        notice_id=notice.id,
        options=[models.PollOption(text=text) for text in options],
    )
    notice.has_poll = True
    db_session.add(poll)
    db_session.commit()
    db_session.refresh(poll)
    return poll


@pytest.fixture
def sample_poll(db_session, sample_notice):
    """
    Create an open poll with three options on the sample notice.
    """
    return make_poll(db_session, sample_notice, datetime.utcnow() + timedelta(days=1))


@pytest.fixture
def sample_item(db_session, resident):
    """
    Create an open lost item posted by the resident.
    """
    item = models.LostFoundItem(
        type="lost",
        title="Black umbrella",
        description="Left near the lobby",
        location="Block B lobby",
        date=datetime.utcnow() - timedelta(days=1),
        status="open",
        user_id=resident.id,
        contact="98765 43210",
    )
    db_session.add(item)
    db_session.commit()
    db_session.refresh(item)
    return item


@pytest.fixture
def sample_request(db_session, resident):
    """
    Create a pending maintenance request owned by the resident.
    """
    request = models.MaintenanceRequest(
        title="Leaking tap",
        description="Kitchen tap leaks constantly",
        type="maintenance",
        category="plumbing",
        priority="high",
        status="pending",
        location="B-204 kitchen",
        user_id=resident.id,
    )
    db_session.add(request)
    db_session.commit()
    db_session.refresh(request)
    return request


def get_auth_header(token: str) -> dict:
    """
    Helper function to create authorization header.
    """
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def poll_factory(db_session):
    """
    Build polls with a chosen end date, e.g. one that has already closed.
    """
    def factory(notice, end_date, options=("Saturday", "Sunday", "Monday")):
        return make_poll(db_session, notice, end_date, options)

    return factory

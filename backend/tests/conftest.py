"""Pytest fixtures: on-disk SQLite database for fast, isolated tests."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.schemas.scoring import MatchResult  # noqa: E402
from app.services import match_scorer  # noqa: E402

# Import all models so they register with Base.metadata
from app.models.user import User  # noqa: E402
from app.models.event import Event  # noqa: E402
from app.models.speaker import Speaker, SpeakerReview, SpeakingSession  # noqa: E402,F401
from app.models.speaker_request import SpeakerRequest  # noqa: E402,F401

SQLITE_URL = "sqlite:///./test.db"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test engine (one session per worker thread)."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def queued_scores(monkeypatch):
    """Replace the scorer: each created request takes the next queued score."""
    queue: list[float] = []

    def _next_score(signals):
        return MatchResult(score=float(queue.pop(0)), breakdown={})

    monkeypatch.setattr(match_scorer, "score_match", _next_score)
    return queue


# ---------------------------------------------------------------------------
# Helpers: plain signal bundles and directory records
# ---------------------------------------------------------------------------
AS_OF = datetime(2026, 6, 1, tzinfo=timezone.utc)


def make_signals(specializations=None, category="", tags=None, title="", description="",
                 ratings=None, sessions=None, bio="", past_records=None, as_of=AS_OF) -> dict:
    """Build a scoring-signals payload (JSON-compatible)."""
    return {
        "speaker": {
            "specializations": specializations or [],
            "bio": bio,
            "past_speaking_records": past_records or [],
        },
        "event": {
            "title": title,
            "description": description,
            "category": category,
            "tags": tags or [],
        },
        "history": {
            "ratings": ratings or [],
            "sessions": sessions or [],
        },
        "as_of": as_of.isoformat(),
    }


def make_user(db, name: str = "Organizer") -> User:
    user = User(display_name=name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_speaker(db, name: str = "Speaker", **fields) -> Speaker:
    fields.setdefault("email", f"{name.lower().replace(' ', '.')}@example.com")
    speaker = Speaker(name=name, **fields)
    db.add(speaker)
    db.commit()
    db.refresh(speaker)
    return speaker


def make_event(db, organizer: User, title: str = "Tech Summit", **fields) -> Event:
    event_row = Event(title=title, organizer_id=organizer.user_id, **fields)
    db.add(event_row)
    db.commit()
    db.refresh(event_row)
    return event_row


def create_test_user(client: TestClient, name: str = "Test Organizer") -> dict:
    """Helper: POST /api/users and return response JSON."""
    resp = client.post("/api/users/", json={"display_name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_speaker(client: TestClient, name: str = "Test Speaker", **fields) -> dict:
    """Helper: POST /api/speakers and return response JSON."""
    payload = {"name": name, "email": f"{name.lower().replace(' ', '.')}@example.com"}
    payload.update(fields)
    resp = client.post("/api/speakers/", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_test_event(client: TestClient, organizer_id: str, title: str = "Test Event", **fields) -> dict:
    """Helper: POST /api/events and return response JSON."""
    payload = {"title": title, "organizer_id": organizer_id}
    payload.update(fields)
    resp = client.post("/api/events/", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()

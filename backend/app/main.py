"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.database import Base, engine
from app.exceptions import ServiceException, general_exception_handler, service_exception_handler

# Import routers
from app.routers import users, speakers, events, speaker_requests

# Import all models so Base.metadata knows about them
from app.models.user import User                                      # noqa: F401
from app.models.event import Event                                    # noqa: F401
from app.models.speaker import Speaker, SpeakerReview, SpeakingSession  # noqa: F401
from app.models.speaker_request import SpeakerRequest                 # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title="Speaker Requests",
    description="Speaker request matching, ranking and lifecycle for event organizers",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ServiceException, service_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Register routers
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(speakers.router, prefix="/api/speakers", tags=["Speakers"])
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(speaker_requests.router, prefix="/api/speaker-requests", tags=["SpeakerRequests"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}

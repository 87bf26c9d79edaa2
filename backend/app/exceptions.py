"""Domain exceptions raised by the service layer, and their HTTP handlers."""
import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ServiceException(Exception):
    """Base exception for service layer errors.

    ``context`` carries the identifiers (request id, offending pair, ...)
    a caller needs to render an actionable message.
    """

    status_code = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}


class DuplicateRequest(ServiceException):
    """A request already exists for this (speaker, event) pair."""

    status_code = 409

    def __init__(self, speaker_id: str, event_id: str, request_id: Optional[str] = None):
        super().__init__(
            f"Speaker {speaker_id} already has a request for event {event_id}",
            request_id=request_id,
            speaker_id=speaker_id,
            event_id=event_id,
        )
        self.request_id = request_id
        self.speaker_id = speaker_id
        self.event_id = event_id


class InvalidTransition(ServiceException):
    """The request is not pending; terminal states are immutable."""

    status_code = 409

    def __init__(self, request_id: str, current_status: str, attempted: str):
        super().__init__(
            f"Cannot {attempted} request {request_id}: it is already {current_status}",
            request_id=request_id,
            status=current_status,
            attempted=attempted,
        )
        self.request_id = request_id
        self.current_status = current_status
        self.attempted = attempted


class ValidationError(ServiceException):
    """Missing or malformed caller input."""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None, **context: Any):
        super().__init__(message, field=field, **context)
        self.field = field


class NotFound(ServiceException):
    """A referenced speaker, event, user or request does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=str(entity_id))
        self.entity = entity
        self.entity_id = entity_id


class StoreUnavailable(ServiceException):
    """The persistence layer could not be reached."""

    status_code = 503

    def __init__(self, operation: str):
        super().__init__(f"Request store unavailable during {operation}", operation=operation)
        self.operation = operation


async def service_exception_handler(request: Request, exc: ServiceException) -> JSONResponse:
    """Render a service exception with its context."""
    if exc.status_code >= 500:
        logger.error("Service error in %s: %s", request.url.path, exc)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.__class__.__name__)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.message,
            "type": exc.__class__.__name__,
            "context": exc.context,
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unexpected error in %s", request.url.path)

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "type": "InternalError",
        },
    )

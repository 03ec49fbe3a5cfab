"""
Exception handlers mapping domain errors to JSON responses

Every error body has the shape {"error": kind, "message": text}.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.exceptions import ConfigurationError, HabitTrackerError, StorageError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


async def habit_tracker_error_handler(request: Request, exc: HabitTrackerError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")

    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            extra={"request_id": request_id},
        )
        # Storage internals never reach the client
        if isinstance(exc, StorageError):
            body = {"error": exc.kind, "message": INTERNAL_ERROR_MESSAGE}
        elif isinstance(exc, ConfigurationError):
            body = {"error": exc.kind, "message": "Service is not configured correctly"}
        else:
            body = exc.to_dict()
    else:
        logger.info(
            f"{exc.kind} on {request.method} {request.url.path}: {exc.message}",
            extra={"request_id": request_id},
        )
        body = exc.to_dict()

    return JSONResponse(status_code=exc.status_code, content=body)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and invalid fields are 400 InvalidRequest, not 422"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        if location:
            message = f"{location}: {message}"
    else:
        message = "Invalid request"

    logger.info(f"InvalidRequest on {request.method} {request.url.path}: {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "InvalidRequest", "message": message},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}",
        extra={"request_id": request_id},
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "InternalError", "message": INTERNAL_ERROR_MESSAGE},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HabitTrackerError, habit_tracker_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

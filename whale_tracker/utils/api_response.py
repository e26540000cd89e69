"""
API error handling for the whale tracker routes.

Domain errors are rendered with the standard ``ApiResponse`` envelope and
the HTTP status carried by the error class.
"""

import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from whale_tracker.models.api_models import ApiResponse
from whale_tracker.utils.error_handling import ErrorCode, WhaleTrackerError

logger = logging.getLogger(__name__)


def error_json(message: str, code: str, status_code: int,
               details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    """Build an error envelope response."""
    body = ApiResponse.error_response(message=message, code=code, details=details or None)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def handle_api_errors(func: Callable):
    """Decorator turning unexpected exceptions into internal ``WhaleTrackerError``s.

    Domain errors pass through untouched so the registered handler can render
    them with their own status code.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except WhaleTrackerError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in {func.__name__}: {str(e)}")
            raise WhaleTrackerError("An internal server error occurred") from e

    return wrapper


async def whale_tracker_error_handler(request: Request, exc: WhaleTrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {str(exc)}")
    return error_json(exc.message, exc.error_code.name, exc.status_code, exc.details)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return error_json(
        "Invalid request parameters",
        ErrorCode.VALIDATION_ERROR.name,
        status.HTTP_400_BAD_REQUEST,
        {"errors": errors},
    )


def register_error_handlers(app: FastAPI):
    """Install the envelope-rendering exception handlers on an application."""
    app.add_exception_handler(WhaleTrackerError, whale_tracker_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

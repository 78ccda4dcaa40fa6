"""FastAPI exception handlers rendering domain errors as JSON."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from insightnotes.errors import InsightNotesError, UnauthenticatedError

logger = logging.getLogger(__name__)


def _response(status_code: int, error: str, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message},
        headers=headers,
    )


async def domain_exception_handler(request: Request, exc: InsightNotesError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthenticatedError) else None
    return _response(exc.status_code, exc.code, exc.message, headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request payload") if errors else "Invalid request payload"
    return _response(status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error", message)


def register_error_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI application."""
    app.add_exception_handler(InsightNotesError, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

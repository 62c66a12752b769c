"""HTTP mapping for coordination errors."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from photo_reveal.domain.errors import (
    PhotoRevealError,
    SessionEnded,
    SessionNotFound,
    StoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES: dict[type[PhotoRevealError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    SessionEnded: status.HTTP_410_GONE,
}


def status_for(exc: PhotoRevealError) -> int:
    """Return the HTTP status for a coordination error."""
    for error_type, code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    if isinstance(exc, StoreError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_409_CONFLICT


def register_exception_handlers(app: FastAPI) -> None:
    """Render coordination errors as JSON bodies with a fitting status."""

    @app.exception_handler(PhotoRevealError)
    async def photo_reveal_error_handler(
        request: Request, exc: PhotoRevealError
    ) -> JSONResponse:
        if isinstance(exc, StoreError):
            logger.error(
                "Store failure on %s %s",
                request.method,
                request.url.path,
                exc_info=exc,
            )
        return JSONResponse(
            status_code=status_for(exc),
            content={"error": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        _request: Request, _exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": ValidationError.message},
        )

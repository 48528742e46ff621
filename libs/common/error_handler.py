"""Global exception handlers giving every service the same error envelope.

Domain errors expose ``status_code`` and ``detail`` and are returned as-is.
Persistence and unexpected errors are logged with their traceback and answered
with a generic message so no internals reach the client.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)

GENERIC_ERROR_DETAIL = "Something went wrong. Please try again later."


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 400
    detail: str = "Request could not be processed"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


def _error_response(status_code: int, detail: str) -> JSONResponse:
    body = {"detail": detail}
    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id
    return JSONResponse(status_code=status_code, content=body)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
        return _error_response(exc.status_code, GENERIC_ERROR_DETAIL)
    logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
    return _error_response(exc.status_code, exc.detail)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s", request.url.path)
    return _error_response(500, GENERIC_ERROR_DETAIL)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(500, GENERIC_ERROR_DETAIL)


def add_exception_handlers(app: FastAPI) -> None:
    """Register the shared exception handlers on ``app``."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

"""Global exception handlers for consistent JSON error responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from libs.common.errors import StoreError
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


def _error_response(status_code: int, detail: str, code: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": code, "request_id": get_request_id()},
        headers=headers,
    )


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Store error on %s %s: %s",
            request.method,
            request.url.path,
            exc.detail,
            exc_info=exc.__cause__ or exc,
        )
    return _error_response(exc.status_code, exc.detail, exc.code, exc.headers)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Constraint violation on %s: %s", request.url.path, exc.orig)
    return _error_response(
        status.HTTP_409_CONFLICT,
        "The request conflicts with existing data",
        "conflict",
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s", request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "The operation could not be completed",
        "internal_error",
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        "internal_error",
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register handlers for the store error taxonomy and database failures."""
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

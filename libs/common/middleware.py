"""Request tracing for the store app.

Every request gets an ``X-Request-ID`` (propagated when the client sends one)
and one start/finish log line carrying the caller's login when a valid bearer
token or session cookie is present.
"""
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.auth.tokens import decode_access_token
from libs.common.config import get_settings
from libs.common.errors import UnauthorizedError
from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

QUIET_PATHS = frozenset({"/health"})


def caller_login(request: Request) -> Optional[str]:
    """Login from the bearer token, else the session cookie; None if neither verifies."""
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    token = credentials.strip() if scheme.lower() == "bearer" else ""
    token = token or request.cookies.get(get_settings().SESSION_COOKIE_NAME, "")
    if not token:
        return None
    try:
        return decode_access_token(token).login
    except UnauthorizedError:
        return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        caller = caller_login(request)
        request_id = set_request_context(
            request_id=request.headers.get("X-Request-ID"),
            path=request.url.path,
            method=request.method,
            caller=caller,
        )
        quiet = request.url.path in QUIET_PATHS
        started = time.perf_counter()

        if not quiet:
            logger.info(
                "%s %s started",
                request.method,
                request.url.path,
                extra={"extra_fields": {"caller": caller}},
            )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s %s crashed after %.1f ms",
                request.method,
                request.url.path,
                (time.perf_counter() - started) * 1000,
            )
            clear_request_context()
            raise

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        if not quiet:
            level = "warning" if response.status_code >= 400 else "info"
            getattr(logger, level)(
                "%s %s -> %s",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    "extra_fields": {
                        "caller": caller,
                        "status_code": response.status_code,
                        "duration_ms": elapsed_ms,
                    }
                },
            )

        clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


def add_observability_middleware(app: FastAPI) -> None:
    """Configure logging and install request tracing on ``app``."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware)

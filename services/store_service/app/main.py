"""FastAPI application for the Store Service."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.store_service.routers import (
    admin_catalog_router,
    auth_router,
    catalog_router,
    orders_router,
    pages_router,
)
from slowapi.errors import RateLimitExceeded


def create_app() -> FastAPI:
    """Create and configure the Store Service FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title="ShoeStore Service",
        version="0.1.0",
        description="Shoe store catalog, ordering and order fulfilment.",
    )

    # Add rate limiter state to app
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Add global exception handlers for consistent error responses
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "store"}

    # JSON API
    app.include_router(auth_router, prefix="/api")
    app.include_router(catalog_router, prefix="/api")
    app.include_router(admin_catalog_router, prefix="/api")
    app.include_router(orders_router, prefix="/api")

    # Server-rendered pages
    app.include_router(pages_router)

    return app


app = create_app()

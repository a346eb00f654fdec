"""FastAPI application definition."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .deps import Settings, lifespan, settings
from .errors import register_exception_handlers
from .routes import api_router


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        app_settings: Settings to use. Defaults to the environment-loaded ones.

    Returns:
        Configured FastAPI application.
    """
    app_settings = app_settings or settings
    app = FastAPI(
        title="aurora",
        description="Multi-tenant authorization and session core",
        version="0.1.0",
        lifespan=lifespan,
        redirect_slashes=False,  # Prevent 307 redirects that lose auth headers
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials="*" not in app_settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, expose_internal_errors=app_settings.is_development)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()

"""
FastAPI application factory.

Creates and configures the FastAPI application with:
- OpenAPI documentation with the bearer security scheme
- CORS middleware
- Calendar routers
"""
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .startup import lifespan

logger = logging.getLogger(__name__)


def create_openapi_schema(app: FastAPI):
    """Generate custom OpenAPI schema with security schemes."""
    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        from fastapi.openapi.utils import get_openapi

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )

        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "bearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Application user token"
            }
        }

        openapi_schema["tags"] = [
            {"name": "health", "description": "Health check endpoints"},
            {"name": "calendar-connection", "description": "Google Calendar OAuth connection"},
            {"name": "calendar-sync", "description": "Appointment <-> Google Calendar sync"},
        ]

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    return custom_openapi


def configure_cors(app: FastAPI):
    """Configure CORS middleware for the browser app."""
    origins = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )


def register_routers(app: FastAPI):
    """Register API routers."""
    from .api import calendar_routes

    app.include_router(calendar_routes.router)
    app.include_router(calendar_routes.sync_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "version": __version__}


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        use_lifespan: Attach startup/shutdown hooks (workers); tests turn this off

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Clinic Calendar Sync",
        description="""
Google Calendar synchronization for clinic appointments.

## Features
- Google Calendar OAuth connection per user
- Outbound sync of appointment create/update/delete
- Inbound reconciliation of calendar changes

## Authentication
Protected endpoints require Bearer token authentication.
""",
        version=__version__,
        lifespan=lifespan if use_lifespan else None,
        redirect_slashes=False,
    )

    app.openapi = create_openapi_schema(app)
    configure_cors(app)
    register_routers(app)
    return app

"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crossroute.config import get_settings
from crossroute.routing.factory import create_route_service
from crossroute.services.route_service import RouteService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    yield
    # Shutdown
    await app.state.route_service.aclose()
    logger.info("Route service clients closed")


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")} for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "detail": {"code": "INVALID_REQUEST", "message": "Invalid request", "errors": errors}
        },
    )


def create_app(route_service: RouteService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        route_service: Wired service to serve (defaults to create_route_service())
    """
    settings = get_settings()

    app = FastAPI(
        title="Crossroute API",
        description="Same-chain and cross-chain swap route discovery",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.route_service = route_service or create_route_service(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _invalid_request)

    # Register routes
    from crossroute.api.routes import health, routes

    app.include_router(health.router, tags=["Health"])
    app.include_router(routes.router, prefix="/api/v1", tags=["Routes"])

    return app


# Default app instance
app = create_app()

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from tripplanner.api.routers.chat import router as chat_router
from tripplanner.api.routers.itinerary import router as itinerary_router
from tripplanner.api.routers.locations import router as locations_router
from tripplanner.api.routers.routing import router as routing_router
from tripplanner.api.routers.smart_prompts import router as smart_prompts_router
from tripplanner.api.routers.trips import router as trips_router
from tripplanner.api.routers.trips import shared_router
from tripplanner.core.rate_limiting import create_limiter, install_rate_limiting
from tripplanner.core.repository import RepositoryUnavailable
from tripplanner.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI(title="Trip Planner Backend")

    # CORS: local frontend by default, extra origins from ALLOWED_ORIGINS
    allowed_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    if settings.allowed_origins:
        allowed_origins.extend(
            [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
        )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    limiter = create_limiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    install_rate_limiting(application, limiter)

    @application.exception_handler(RepositoryUnavailable)
    async def repository_unavailable_handler(request: Request, exc: RepositoryUnavailable):
        logger.error(f"Repository unavailable for {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": "Database is not available"})

    @application.exception_handler(PyMongoError)
    async def database_error_handler(request: Request, exc: PyMongoError):
        logger.error(f"Database error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Database error"})

    @application.get("/healthz")
    @limiter.exempt
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    application.include_router(routing_router)
    application.include_router(itinerary_router)
    application.include_router(smart_prompts_router)
    application.include_router(locations_router)
    application.include_router(trips_router)
    application.include_router(shared_router)
    application.include_router(chat_router)
    return application


app = create_app()

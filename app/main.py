from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.settings import get_settings
from db.session import engine
from app.routers.auth import router as auth_router
from app.routers.availability import router as availability_router
from app.routers.notifications import router as notifications_router
from app.routers.schedule import router as schedule_router
from app.routers.stats import router as stats_router
from app.routers.transfers import router as transfers_router


settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Ensure DB connections are cleanly closed on shutdown
    await engine.dispose()


def create_app(allowed_origins: Sequence[str] | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        allowed_origins: Optional list of CORS origins to allow. Defaults to
            the ``CORS_ORIGINS`` setting.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(allowed_origins or settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(schedule_router, prefix="/schedule", tags=["schedule"])
    app.include_router(availability_router, prefix="/availability", tags=["availability"])
    app.include_router(transfers_router, prefix="/transfers", tags=["transfers"])
    app.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
    app.include_router(stats_router, prefix="/stats", tags=["stats"])

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()

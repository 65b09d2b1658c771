"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from commstats.config import get_settings
from commstats.database import close_db, init_db
from commstats.gamification.router import router as gamification_router
from commstats.health.router import router as health_router
from commstats.middleware import setup_middleware
from commstats.ranking.router import router as ranking_router
from commstats.stats.router import router as stats_router
from commstats.users.router import roles_router
from commstats.users.router import router as users_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    yield
    await close_db()


def create_app(*, manage_db: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    ``manage_db=False`` leaves engine setup to the caller (tests).
    """
    settings = get_settings()

    app = FastAPI(
        title="Community Stats API",
        description="Community statistics, leaderboards, ranks and badges",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan if manage_db else None,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(stats_router)
    app.include_router(users_router)
    app.include_router(roles_router)
    # Badge routes first so /leaderboard/badges wins over /leaderboard/{metric}.
    app.include_router(gamification_router)
    app.include_router(ranking_router)

    return app


app = create_app()

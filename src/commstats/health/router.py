"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from commstats.config import get_settings
from commstats.database import get_session
from commstats.stats.snapshot_store import get_latest_row

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe. Returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: database connectivity and the latest stats snapshot time.

    A missing snapshot (worker not run yet) is reported but does not make the
    API unready; the stats routes answer 404 until it exists.
    """
    checks: dict[str, object] = {}
    snapshot_at: str | None = None

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
        row = await get_latest_row(db)
        checks["snapshot"] = "ok" if row is not None else "pending"
        if row is not None and row.created_at is not None:
            snapshot_at = row.created_at.isoformat()
    except SQLAlchemyError as exc:
        checks["database"] = f"error: {exc}"

    ready = checks["database"] == "ok"
    return {"status": "ready" if ready else "degraded", "checks": checks, "snapshot_at": snapshot_at}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }

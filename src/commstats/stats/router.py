"""Community stats endpoints: latest snapshot and role distribution."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from commstats.database import get_session
from commstats.stats.magnitude import magnitude_color, magnitude_icon_path, parse_magnitude
from commstats.stats.schemas import RoleDistributionEntry, SnapshotResponse
from commstats.stats.snapshot_store import get_latest

router = APIRouter(prefix="/api/v1/stats", tags=["Stats"])


@router.get("/latest", response_model=SnapshotResponse)
async def latest_snapshot(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> SnapshotResponse:
    """Latest community-wide snapshot written by the stats worker."""
    snapshot = await get_latest(db)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No stats snapshot available yet")
    return snapshot


@router.get("/roles", response_model=list[RoleDistributionEntry])
async def role_distribution(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[RoleDistributionEntry]:
    """Role breakdown from the latest snapshot, highest magnitude first."""
    snapshot = await get_latest(db)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No stats snapshot available yet")

    entries = []
    for role, count in snapshot.role_stats.items():
        value = parse_magnitude(role)
        entries.append(
            RoleDistributionEntry(
                role=role,
                count=count,
                magnitude=value,
                color=magnitude_color(value) if value is not None else None,
                icon_path=magnitude_icon_path(value),
            )
        )

    # Named roles (Verified, Leader) first, then tiers from highest down.
    entries.sort(key=lambda e: (e.magnitude is not None, -(e.magnitude or 0), e.role))
    return entries

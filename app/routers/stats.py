from __future__ import annotations

from fastapi import APIRouter, Path, Query

from app.deps import ActorDep, DbDep
from app.schemas.stats import StatsPeriod, StatsSummary
from app.services.schedule_errors import ScheduleError, to_http_exception
from app.services.stats_service import get_stats, get_stats_summary

router = APIRouter()


@router.get("/{year}/summary", response_model=StatsSummary)
async def stats_summary(
    actor: ActorDep,
    db: DbDep,
    year: int = Path(ge=2000, le=2100),
    user_id: int | None = Query(None),
) -> StatsSummary:
    """Totals, per-week averages and bucket shares for a year."""

    try:
        return await get_stats_summary(db, actor=actor, year=year, user_id=user_id)
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.get("/{year}/{month}", response_model=StatsPeriod)
async def monthly_stats(
    actor: ActorDep,
    db: DbDep,
    year: int = Path(ge=2000, le=2100),
    month: int = Path(ge=1, le=12),
    user_id: int | None = Query(None),
) -> StatsPeriod:
    try:
        return await get_stats(db, actor=actor, year=year, month=month, user_id=user_id)
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.get("/{year}", response_model=StatsPeriod)
async def yearly_stats(
    actor: ActorDep,
    db: DbDep,
    year: int = Path(ge=2000, le=2100),
    user_id: int | None = Query(None),
) -> StatsPeriod:
    try:
        return await get_stats(db, actor=actor, year=year, user_id=user_id)
    except ScheduleError as exc:
        raise to_http_exception(exc)

from __future__ import annotations

"""Weekly shift statistics.

A week's stats are recomputed from the availability grid on publish and
after every committed transfer, then written over the previous snapshot for
that (company, year, month, week, user) key.
"""

from typing import Iterable, Sequence

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.models.availability import CellStatus, DayOfWeek, ShiftKind
from app.models.weekly_stats import WeeklyStats
from app.schemas.stats import ShiftMix, StatsPeriod, StatsSummary, WeeklyStatsRead
from app.services.schedule_errors import SchedulePersistenceError
from app.services.schedule_grid import ScheduleGrid
from app.services.security import Actor, ensure_self_or_admin
from app.services.week_calendar import parse_week_key

SHABBAT_SLOTS: frozenset[tuple[DayOfWeek, ShiftKind]] = frozenset(
    {
        (DayOfWeek.FRIDAY, ShiftKind.EVENING),
        (DayOfWeek.FRIDAY, ShiftKind.NIGHT),
        (DayOfWeek.SATURDAY, ShiftKind.MORNING),
        (DayOfWeek.SATURDAY, ShiftKind.NOON),
        (DayOfWeek.SATURDAY, ShiftKind.EVENING),
    }
)


def classify_shifts(grid: ScheduleGrid, user_id: int) -> ShiftMix:
    """Count the user's selected cells of ``grid.week_key`` per bucket.

    Shabbat slots win over the night bucket, so Friday Night counts as
    Shabbat.
    """
    night = shabbat = regular = 0
    for (shift, day), cell in grid.user_cells(user_id).items():
        if cell.status != CellStatus.SELECTED:
            continue
        if (day, shift) in SHABBAT_SLOTS:
            shabbat += 1
        elif shift == ShiftKind.NIGHT:
            night += 1
        else:
            regular += 1
    return ShiftMix(night_shifts=night, shabbat_shifts=shabbat, regular_shifts=regular)


def stats_period(week_key: str) -> tuple[int, int]:
    """(year, month) a week's stats are filed under: those of its Sunday."""
    sunday = parse_week_key(week_key)
    return sunday.year, sunday.month


async def snapshot_weekly_stats(
    db: AsyncSession,
    *,
    company_id: int,
    grid: ScheduleGrid,
    user_ids: Iterable[int],
) -> int:
    """Recompute and store the weekly stats of ``user_ids``. Does not commit.

    Returns:
        Number of stats records written.
    """
    ids = sorted(set(user_ids))
    if not ids:
        return 0
    year, month = stats_period(grid.week_key)

    stmt: Select[tuple[WeeklyStats]] = select(WeeklyStats).where(
        WeeklyStats.company_id == company_id,
        WeeklyStats.year == year,
        WeeklyStats.month == month,
        WeeklyStats.week_key == grid.week_key,
        WeeklyStats.user_id.in_(ids),
    )
    try:
        existing = {row.user_id: row for row in (await db.execute(stmt)).scalars().all()}
    except SQLAlchemyError as exc:
        logger.warning("Failed to read weekly stats for %s", grid.week_key, exc_info=True)
        raise SchedulePersistenceError("persistence_failed") from exc

    for user_id in ids:
        mix = classify_shifts(grid, user_id)
        row = existing.get(user_id)
        if row is None:
            row = WeeklyStats(
                company_id=company_id,
                year=year,
                month=month,
                week_key=grid.week_key,
                user_id=user_id,
            )
            db.add(row)
        row.night_shifts = mix.night_shifts
        row.shabbat_shifts = mix.shabbat_shifts
        row.regular_shifts = mix.regular_shifts

    logger.info("Weekly stats written for %s users in %s", len(ids), grid.week_key)
    return len(ids)


async def _load_stats_rows(
    db: AsyncSession, *, company_id: int, user_id: int, year: int, month: int | None = None
) -> list[WeeklyStats]:
    stmt: Select[tuple[WeeklyStats]] = (
        select(WeeklyStats)
        .where(
            WeeklyStats.company_id == company_id,
            WeeklyStats.user_id == user_id,
            WeeklyStats.year == year,
        )
        .order_by(WeeklyStats.week_key)
    )
    if month is not None:
        stmt = stmt.where(WeeklyStats.month == month)
    try:
        rows: Sequence[WeeklyStats] = (await db.execute(stmt)).scalars().all()
    except SQLAlchemyError as exc:
        logger.warning("Failed to read stats for user %s", user_id, exc_info=True)
        raise SchedulePersistenceError("persistence_failed") from exc
    return list(rows)


def _sum(rows: Iterable[WeeklyStats]) -> ShiftMix:
    totals = ShiftMix()
    for row in rows:
        totals.night_shifts += row.night_shifts
        totals.shabbat_shifts += row.shabbat_shifts
        totals.regular_shifts += row.regular_shifts
    return totals


async def get_stats(
    db: AsyncSession,
    *,
    actor: Actor,
    year: int,
    month: int | None = None,
    user_id: int | None = None,
) -> StatsPeriod:
    """Stats of one user for a month (or a whole year when ``month`` is None).

    Employees may only read their own stats.
    """
    target_user = user_id if user_id is not None else actor.user_id
    ensure_self_or_admin(actor, target_user)
    rows = await _load_stats_rows(
        db, company_id=actor.company_id, user_id=target_user, year=year, month=month
    )
    return StatsPeriod(
        user_id=target_user,
        year=year,
        month=month,
        weeks=[WeeklyStatsRead.model_validate(r, from_attributes=True) for r in rows],
        totals=_sum(rows),
    )


async def get_stats_summary(
    db: AsyncSession, *, actor: Actor, year: int, user_id: int | None = None
) -> StatsSummary:
    """Yearly totals, per-week averages and the share of each bucket."""
    target_user = user_id if user_id is not None else actor.user_id
    ensure_self_or_admin(actor, target_user)
    rows = await _load_stats_rows(db, company_id=actor.company_id, user_id=target_user, year=year)
    totals = _sum(rows)
    total = totals.total
    weeks = len(rows)
    buckets = {
        "night": totals.night_shifts,
        "shabbat": totals.shabbat_shifts,
        "regular": totals.regular_shifts,
    }
    averages = {name: (count / weeks if weeks else 0.0) for name, count in buckets.items()}
    averages["total"] = total / weeks if weeks else 0.0
    percentages = {
        name: (round(count / total * 100, 1) if total else 0.0) for name, count in buckets.items()
    }
    return StatsSummary(
        user_id=target_user,
        year=year,
        weeks=weeks,
        totals=totals,
        total_shifts=total,
        average_per_week=averages,
        percentages=percentages,
    )

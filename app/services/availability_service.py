from __future__ import annotations

"""Availability store: the system of record for one (company, week) partition.

``load_week_state`` reads everything the scheduling core needs into a
:class:`WeekState` (flags, staffing targets, quotas and the cell grid,
including the boundary cells of the neighbouring weeks). Services mutate the
state in memory, hand it back to ``save_week_state`` and finish with a
single ``commit_or_rollback`` so a cascade is either fully persisted or not
at all.
"""

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.logging import logger
from app.models.availability import (
    AvailabilityCell,
    AvailabilityWeek,
    CellStatus,
    DayOfWeek,
    ShiftKind,
)
from app.models.schedule_week import ScheduleWeek, ShiftQuota, StaffingTarget
from app.models.user import User
from app.schemas.availability import (
    AvailabilityGridOut,
    AvailabilityIn,
    CellOut,
    WeekAvailabilityOut,
)
from app.services.schedule_errors import SchedulePersistenceError, ScheduleValidationError
from app.services.schedule_grid import Cell, CellKey, ScheduleGrid
from app.services.security import Actor, ensure_admin, ensure_self_or_admin
from app.services.shift_rules import is_blocked
from app.services.user_service import get_company_user, list_company_users
from app.services.week_calendar import DAYS, SHIFTS, shift_week_key


@dataclass
class WeekState:
    """In-memory view of one (company, week) partition.

    Attributes:
        company_id: Company partition.
        week_key: Week being scheduled.
        grid: Availability cells of the week plus neighbour boundary cells.
        staffing: Defined staffing targets keyed by (day, shift).
        quotas: Weekly shift targets keyed by user id; missing means 0.
        notes: Free-text notes keyed by user id.
        published: PublishState flag.
        edit_allowed: EditState flag.
        schedule_week: Backing partition row, ``None`` until first saved.
    """

    company_id: int
    week_key: str
    grid: ScheduleGrid
    staffing: dict[tuple[DayOfWeek, ShiftKind], int] = field(default_factory=dict)
    quotas: dict[int, int] = field(default_factory=dict)
    notes: dict[int, str] = field(default_factory=dict)
    published: bool = False
    edit_allowed: bool = False
    schedule_week: ScheduleWeek | None = None
    week_rows: dict[tuple[str, int], AvailabilityWeek] = field(default_factory=dict, repr=False)
    cell_rows: dict[CellKey, AvailabilityCell] = field(default_factory=dict, repr=False)
    changed_notes: set[int] = field(default_factory=set, repr=False)

    def slot_target(self, day: DayOfWeek, shift: ShiftKind) -> int:
        return self.staffing.get((day, shift), 0)

    def employee_target(self, user_id: int) -> int:
        return self.quotas.get(user_id, 0)

    def set_notes(self, user_id: int, notes: str) -> None:
        self.notes[user_id] = notes
        self.changed_notes.add(user_id)


async def commit_or_rollback(db: AsyncSession) -> None:
    """Commit the current transaction, rolling back on any database error.

    Raises:
        SchedulePersistenceError: If the commit failed. Nothing was persisted.
    """
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Schedule transaction rolled back", exc_info=True)
        raise SchedulePersistenceError("persistence_failed") from exc


async def load_week_state(
    db: AsyncSession, company_id: int, week_key: str, *, lock: bool = False
) -> WeekState:
    """Load the partition ``(company_id, week_key)``.

    Args:
        db: Async SQLAlchemy session.
        company_id: Company partition.
        week_key: Canonical week key.
        lock: Read the partition row ``FOR UPDATE`` so concurrent writers on
            the same week are serialized until this transaction ends.

    Returns:
        WeekState with the grid of the week and the previous Saturday and
        next Sunday cells of every employee.

    Raises:
        SchedulePersistenceError: If the database could not be read.
    """
    try:
        return await _load_week_state(db, company_id, week_key, lock=lock)
    except SQLAlchemyError as exc:
        logger.warning("Failed to load schedule week %s", week_key, exc_info=True)
        raise SchedulePersistenceError("persistence_failed") from exc


async def _load_week_state(
    db: AsyncSession, company_id: int, week_key: str, *, lock: bool
) -> WeekState:
    week_stmt: Select[tuple[ScheduleWeek]] = (
        select(ScheduleWeek)
        .where(ScheduleWeek.company_id == company_id, ScheduleWeek.week_key == week_key)
        .options(
            selectinload(ScheduleWeek.staffing_targets),
            selectinload(ScheduleWeek.shift_quotas),
        )
    )
    if lock:
        week_stmt = week_stmt.with_for_update()
    schedule_week = (await db.execute(week_stmt)).scalar_one_or_none()

    prev_key = shift_week_key(week_key, -1)
    next_key = shift_week_key(week_key, 1)
    boundary_day = {prev_key: DayOfWeek.SATURDAY, next_key: DayOfWeek.SUNDAY}

    av_stmt: Select[tuple[AvailabilityWeek]] = (
        select(AvailabilityWeek)
        .where(
            AvailabilityWeek.company_id == company_id,
            AvailabilityWeek.week_key.in_([prev_key, week_key, next_key]),
        )
        .options(selectinload(AvailabilityWeek.cells))
    )
    av_rows: Sequence[AvailabilityWeek] = (await db.execute(av_stmt)).scalars().all()

    state = WeekState(company_id=company_id, week_key=week_key, grid=ScheduleGrid(week_key))
    cells: dict[CellKey, Cell] = {}
    for row in av_rows:
        state.week_rows[(row.week_key, row.user_id)] = row
        if row.week_key == week_key:
            state.notes[row.user_id] = row.notes or ""
        for cell_row in row.cells:
            if row.week_key != week_key and cell_row.day != boundary_day[row.week_key]:
                continue
            key = CellKey(row.week_key, row.user_id, ShiftKind(cell_row.shift), DayOfWeek(cell_row.day))
            cells[key] = Cell(is_available=cell_row.is_available, status=cell_row.status)
            state.cell_rows[key] = cell_row
    state.grid = ScheduleGrid(week_key, cells)

    if schedule_week is not None:
        state.schedule_week = schedule_week
        state.published = schedule_week.published
        state.edit_allowed = schedule_week.edit_allowed
        state.staffing = {
            (DayOfWeek(t.day), ShiftKind(t.shift)): t.required
            for t in schedule_week.staffing_targets
        }
        state.quotas = {q.user_id: q.max_shifts for q in schedule_week.shift_quotas}
    return state


def _ensure_week_row(db: AsyncSession, state: WeekState, week_key: str, user_id: int) -> AvailabilityWeek:
    row = state.week_rows.get((week_key, user_id))
    if row is None:
        row = AvailabilityWeek(
            company_id=state.company_id,
            week_key=week_key,
            user_id=user_id,
            notes="",
            cells=[],
        )
        db.add(row)
        state.week_rows[(week_key, user_id)] = row
    return row


async def save_week_state(db: AsyncSession, state: WeekState) -> None:
    """Write ``state`` back to the session and flush. Does not commit.

    Only changed cells are touched, and only the fields that changed on
    them, so sibling columns are never clobbered.
    """
    schedule_week = state.schedule_week
    if schedule_week is None:
        schedule_week = ScheduleWeek(
            company_id=state.company_id,
            week_key=state.week_key,
            staffing_targets=[],
            shift_quotas=[],
        )
        db.add(schedule_week)
        state.schedule_week = schedule_week

    schedule_week.published = state.published
    schedule_week.edit_allowed = state.edit_allowed

    targets = {(t.day, t.shift): t for t in schedule_week.staffing_targets}
    for (day, shift), required in state.staffing.items():
        target = targets.get((day, shift))
        if target is None:
            schedule_week.staffing_targets.append(
                StaffingTarget(day=day, shift=shift, required=required)
            )
        elif target.required != required:
            target.required = required

    quotas = {q.user_id: q for q in schedule_week.shift_quotas}
    for user_id, max_shifts in state.quotas.items():
        quota = quotas.get(user_id)
        if quota is None:
            schedule_week.shift_quotas.append(ShiftQuota(user_id=user_id, max_shifts=max_shifts))
        elif quota.max_shifts != max_shifts:
            quota.max_shifts = max_shifts

    for key, cell in state.grid.changes().items():
        cell_row = state.cell_rows.get(key)
        if cell_row is None:
            week_row = _ensure_week_row(db, state, key.week_key, key.user_id)
            cell_row = AvailabilityCell(
                shift=key.shift,
                day=key.day,
                is_available=cell.is_available,
                status=cell.status,
            )
            week_row.cells.append(cell_row)
            state.cell_rows[key] = cell_row
            continue
        if cell_row.status != cell.status:
            cell_row.status = cell.status
        if cell_row.is_available != cell.is_available:
            cell_row.is_available = cell.is_available

    for user_id in state.changed_notes:
        week_row = _ensure_week_row(db, state, state.week_key, user_id)
        week_row.notes = state.notes[user_id]

    try:
        await db.flush()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Failed to write schedule week %s", state.week_key, exc_info=True)
        raise SchedulePersistenceError("persistence_failed") from exc


def user_grid(state: WeekState, user: User) -> AvailabilityGridOut:
    """Availability sheet of one employee as stored in ``state``."""
    own = state.grid.user_cells(user.id)
    cells: list[CellOut] = []
    for shift in SHIFTS:
        for day in DAYS:
            cell = own.get((shift, day)) or Cell()
            cells.append(
                CellOut(shift=shift, day=day, is_available=cell.is_available, status=cell.status)
            )
    return AvailabilityGridOut(
        week_key=state.week_key,
        user_id=user.id,
        name=user.display_name,
        notes=state.notes.get(user.id, ""),
        cells=cells,
        selected_count=state.grid.employee_selected_count(user.id),
        weekly_target=state.employee_target(user.id),
        edit_allowed=state.edit_allowed,
    )


async def get_user_availability(
    db: AsyncSession, *, actor: Actor, week_key: str, user_id: int
) -> AvailabilityGridOut:
    """Read one employee's availability sheet.

    Employees may only read their own sheet; admins any sheet of their company.
    """
    ensure_self_or_admin(actor, user_id)
    user = await get_company_user(db, actor.company_id, user_id)
    state = await load_week_state(db, actor.company_id, week_key)
    return user_grid(state, user)


async def list_week_availability(
    db: AsyncSession, *, actor: Actor, week_key: str
) -> WeekAvailabilityOut:
    """All availability sheets of the company for ``week_key`` (admin only)."""
    ensure_admin(actor)
    state = await load_week_state(db, actor.company_id, week_key)
    users = await list_company_users(db, actor.company_id)
    return WeekAvailabilityOut(
        week_key=week_key,
        edit_allowed=state.edit_allowed,
        published=state.published,
        users=[user_grid(state, u) for u in users],
    )


async def submit_availability(
    db: AsyncSession,
    *,
    actor: Actor,
    week_key: str,
    user_id: int,
    payload: AvailabilityIn,
) -> AvailabilityGridOut:
    """Store declared availability (and optionally notes) for one employee.

    Existing cell statuses are preserved; only ``is_available`` changes.
    Employees can submit only while the week is open for editing; admins
    may submit on behalf of any employee at any time.

    Raises:
        ScheduleAuthorizationError: If an employee submits for someone else.
        ScheduleValidationError: If editing is closed for the week.
    """
    ensure_self_or_admin(actor, user_id)
    user = await get_company_user(db, actor.company_id, user_id)
    state = await load_week_state(db, actor.company_id, week_key, lock=True)
    if not state.edit_allowed and not actor.is_admin:
        raise ScheduleValidationError(
            "edit_closed", "Availability for this week can no longer be changed."
        )

    declared = _declared_cells(payload.available)
    for (shift, day), is_available in declared.items():
        key = CellKey(week_key, user_id, shift, day)
        state.grid.declare(key, is_available)
        # A selected shift of this employee (possibly in the previous week)
        # may already forbid the cell.
        if state.grid.status(key) == CellStatus.DEFAULT and is_blocked(state.grid, key):
            state.grid.set_status(key, CellStatus.DISABLED)
    if payload.notes is not None:
        state.set_notes(user_id, payload.notes)

    await save_week_state(db, state)
    await commit_or_rollback(db)
    logger.info("Availability submitted for user %s in %s", user_id, week_key)
    return user_grid(state, user)


async def save_notes(
    db: AsyncSession, *, actor: Actor, week_key: str, user_id: int, notes: str
) -> AvailabilityGridOut:
    ensure_self_or_admin(actor, user_id)
    user = await get_company_user(db, actor.company_id, user_id)
    state = await load_week_state(db, actor.company_id, week_key, lock=True)
    state.set_notes(user_id, notes)
    await save_week_state(db, state)
    await commit_or_rollback(db)
    return user_grid(state, user)


def _declared_cells(
    available: Mapping[ShiftKind, Mapping[DayOfWeek, bool]],
) -> dict[tuple[ShiftKind, DayOfWeek], bool]:
    # Every cell of the week is declared; omitted cells count as unavailable.
    return {
        (shift, day): bool(available.get(shift, {}).get(day, False))
        for shift in SHIFTS
        for day in DAYS
    }


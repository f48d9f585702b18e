from __future__ import annotations

"""Admin scheduling operations on one (company, week) partition.

Each mutating call loads the partition with a row lock, runs the pure rules
and state machine on the in-memory grid, writes the result back and commits
once. A refused operation raises before anything is written.
"""

from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import describe_cells, logger
from app.models.availability import DayOfWeek, ShiftKind
from app.models.user import User
from app.schemas.schedule import (
    CellChangeOut,
    EditStatusUpdate,
    ScheduleOverview,
    ScheduleTotals,
    ShiftQuotasUpdate,
    SlotOverview,
    StaffingTargetsUpdate,
    ToggleRequest,
    ToggleResult,
    WeekInfo,
)
from app.services import assignment_machine
from app.services.activity_log_service import log_activity
from app.services.availability_service import (
    WeekState,
    commit_or_rollback,
    load_week_state,
    save_week_state,
    user_grid,
)
from app.services.schedule_errors import ScheduleError, ScheduleValidationError
from app.services.schedule_grid import CellKey
from app.services.security import Actor, ensure_admin
from app.services.shift_rules import SlotLoad, is_fully_staffed, most_critical_slots, refusal_message
from app.services.user_service import list_company_users
from app.services.week_calendar import (
    DAYS,
    SHIFTS,
    format_range_label,
    format_week_key,
    week_dates,
    week_range,
    week_range_for_key,
)
from core.settings import get_settings


def get_week_info(offset: int, today: date | None = None) -> WeekInfo:
    """Calendar data for the week ``offset`` weeks from the current week."""
    start, end = week_range(offset, today)
    return WeekInfo(
        offset=offset,
        week_key=format_week_key(start),
        start=start,
        end=end,
        label=format_range_label(start, end),
        dates=week_dates(offset, today),
    )


def slot_loads(state: WeekState) -> list[SlotLoad]:
    """Loads of every slot that has a defined staffing target, in board order."""
    loads: list[SlotLoad] = []
    for day in DAYS:
        for shift in SHIFTS:
            if (day, shift) not in state.staffing:
                continue
            loads.append(
                SlotLoad(
                    day=day,
                    shift=shift,
                    target=state.staffing[(day, shift)],
                    selected=state.grid.slot_selected_count(shift, day),
                    candidates=state.grid.slot_candidate_count(shift, day),
                )
            )
    return loads


def build_overview(state: WeekState, users: list[User]) -> ScheduleOverview:
    loads = {(load.day, load.shift): load for load in slot_loads(state)}
    critical = set(most_critical_slots(loads.values()))

    slots: list[SlotOverview] = []
    for day in DAYS:
        for shift in SHIFTS:
            load = loads.get((day, shift))
            if load is None:
                slots.append(
                    SlotOverview(
                        day=day,
                        shift=shift,
                        selected=state.grid.slot_selected_count(shift, day),
                        candidates=state.grid.slot_candidate_count(shift, day),
                    )
                )
                continue
            slots.append(
                SlotOverview(
                    day=day,
                    shift=shift,
                    target=load.target,
                    selected=load.selected,
                    candidates=load.candidates,
                    criticality=load.criticality,
                    most_critical=(day, shift) in critical,
                )
            )

    fully_staffed = is_fully_staffed(state.staffing, state.grid)
    employees = [user_grid(state, u) for u in users]
    totals = ScheduleTotals(
        required_shifts=sum(state.staffing.values()),
        weekly_targets=sum(state.employee_target(u.id) for u in users),
        assigned_shifts=sum(e.selected_count for e in employees),
    )
    return ScheduleOverview(
        week_key=state.week_key,
        label=format_range_label(*week_range_for_key(state.week_key)),
        published=state.published,
        edit_allowed=state.edit_allowed,
        fully_staffed=fully_staffed,
        understaffed_after_publish=state.published and not fully_staffed,
        slots=slots,
        employees=employees,
        totals=totals,
    )


async def get_schedule_overview(
    db: AsyncSession, *, actor: Actor, week_key: str
) -> ScheduleOverview:
    """Scheduling board of a week.

    Admins always get the full board. Employees only see the final schedule
    once it is published; before that they get an empty, unpublished board.
    """
    state = await load_week_state(db, actor.company_id, week_key)
    if not actor.is_admin and not state.published:
        return ScheduleOverview(
            week_key=week_key,
            label=format_range_label(*week_range_for_key(week_key)),
            published=False,
            edit_allowed=state.edit_allowed,
        )
    users = await list_company_users(db, actor.company_id)
    return build_overview(state, users)


async def toggle_cell(
    db: AsyncSession, *, actor: Actor, week_key: str, payload: ToggleRequest
) -> ToggleResult:
    """Toggle one cell between ``default`` and ``selected``.

    Args:
        db: Async SQLAlchemy session.
        actor: Request identity; must be an admin.
        week_key: Week to edit.
        payload: Employee, shift and day of the cell.

    Returns:
        ToggleResult with the new status, the cascaded cells and the
        re-derived slot and employee counts.

    Raises:
        ScheduleAuthorizationError: If the actor is not an admin.
        ScheduleValidationError: If the selection is refused.
        SchedulePersistenceError: If the change could not be stored.
    """
    ensure_admin(actor)
    state = await load_week_state(db, actor.company_id, week_key, lock=True)
    key = CellKey(week_key, payload.user_id, payload.shift, payload.day)

    try:
        outcome = assignment_machine.toggle(
            state.grid,
            key,
            slot_target=state.slot_target(payload.day, payload.shift),
            employee_target=state.employee_target(payload.user_id),
        )
    except ScheduleError as exc:
        logger.warning(
            "Toggle refused for user %s %s/%s in %s: %s",
            payload.user_id,
            payload.day,
            payload.shift,
            week_key,
            exc.reason,
        )
        raise

    cascade = [
        CellChangeOut(
            week_key=c.key.week_key,
            user_id=c.key.user_id,
            shift=c.key.shift,
            day=c.key.day,
            status=c.after,
        )
        for c in outcome.cascade
    ]

    if outcome.changed:
        await save_week_state(db, state)
        await log_activity(
            db,
            company_id=actor.company_id,
            actor_id=actor.user_id,
            action="shift_toggled",
            target_type="availability_cell",
            target_id=payload.user_id,
            details={
                "week_key": week_key,
                "shift": payload.shift.value,
                "day": payload.day.value,
                "status": outcome.status.value,
                "cascade": [c.model_dump(mode="json") for c in cascade],
            },
        )
        await commit_or_rollback(db)
        logger.info(
            "Toggled user %s %s/%s in %s to %s (cascade: %s)",
            payload.user_id,
            payload.day,
            payload.shift,
            week_key,
            outcome.status,
            describe_cells(c.key for c in outcome.cascade),
        )

    return ToggleResult(
        user_id=payload.user_id,
        shift=payload.shift,
        day=payload.day,
        status=outcome.status,
        changed=outcome.changed,
        cascade=cascade,
        slot_selected=state.grid.slot_selected_count(payload.shift, payload.day),
        employee_selected=state.grid.employee_selected_count(payload.user_id),
    )


def _staffing_out(state: WeekState) -> StaffingTargetsUpdate:
    targets: dict[DayOfWeek, dict[ShiftKind, int]] = {}
    for (day, shift), required in state.staffing.items():
        targets.setdefault(day, {})[shift] = required
    return StaffingTargetsUpdate(targets=targets)


async def update_staffing_targets(
    db: AsyncSession, *, actor: Actor, week_key: str, payload: StaffingTargetsUpdate
) -> StaffingTargetsUpdate:
    """Set staffing targets for one or more slots.

    The whole request is refused if any value is negative or lower than the
    number of employees already selected for that slot.
    """
    ensure_admin(actor)
    state = await load_week_state(db, actor.company_id, week_key, lock=True)

    updates: dict[tuple[DayOfWeek, ShiftKind], int] = {}
    for day, shifts in payload.targets.items():
        for shift, required in shifts.items():
            if required < 0:
                raise ScheduleValidationError("out_of_range", refusal_message("out_of_range"))
            selected = state.grid.slot_selected_count(shift, day)
            if required < selected:
                logger.warning(
                    "Staffing target for %s/%s in %s refused: %s < %s selected",
                    day,
                    shift,
                    week_key,
                    required,
                    selected,
                )
                raise ScheduleValidationError(
                    "below_selected",
                    f"The staffing target for {shift} on {day} cannot be lower than "
                    f"the {selected} employees already assigned.",
                )
            updates[(day, shift)] = required

    state.staffing.update(updates)
    await save_week_state(db, state)
    await log_activity(
        db,
        company_id=actor.company_id,
        actor_id=actor.user_id,
        action="staffing_targets_updated",
        target_type="schedule_week",
        target_id=state.schedule_week.id if state.schedule_week else None,
        details={
            "week_key": week_key,
            "targets": {f"{d.value}/{s.value}": n for (d, s), n in updates.items()},
        },
    )
    await commit_or_rollback(db)
    return _staffing_out(state)


async def update_shift_quotas(
    db: AsyncSession, *, actor: Actor, week_key: str, payload: ShiftQuotasUpdate
) -> ShiftQuotasUpdate:
    """Set weekly shift targets for employees.

    Each value must lie in ``[0, max_weekly_shifts]`` and may not be lower
    than the employee's current number of selected shifts.
    """
    ensure_admin(actor)
    max_shifts = get_settings().max_weekly_shifts
    state = await load_week_state(db, actor.company_id, week_key, lock=True)
    members = {u.id for u in await list_company_users(db, actor.company_id)}

    for user_id, value in payload.quotas.items():
        if user_id not in members:
            raise ScheduleValidationError("unknown_employee", f"Unknown employee {user_id}.")
        if value < 0 or value > max_shifts:
            raise ScheduleValidationError(
                "out_of_range", f"The weekly shift target must be between 0 and {max_shifts}."
            )
        selected = state.grid.employee_selected_count(user_id)
        if value < selected:
            raise ScheduleValidationError(
                "below_selected",
                f"The weekly shift target cannot be lower than the {selected} shifts "
                "already assigned.",
            )

    state.quotas.update(payload.quotas)
    await save_week_state(db, state)
    await log_activity(
        db,
        company_id=actor.company_id,
        actor_id=actor.user_id,
        action="shift_quotas_updated",
        target_type="schedule_week",
        target_id=state.schedule_week.id if state.schedule_week else None,
        details={"week_key": week_key, "quotas": {str(k): v for k, v in payload.quotas.items()}},
    )
    await commit_or_rollback(db)
    return ShiftQuotasUpdate(quotas=dict(state.quotas))


async def set_edit_status(
    db: AsyncSession, *, actor: Actor, week_key: str, payload: EditStatusUpdate
) -> EditStatusUpdate:
    ensure_admin(actor)
    state = await load_week_state(db, actor.company_id, week_key, lock=True)
    state.edit_allowed = payload.edit_allowed
    await save_week_state(db, state)
    await commit_or_rollback(db)
    logger.info("Edit status of %s set to %s", week_key, payload.edit_allowed)
    return EditStatusUpdate(edit_allowed=state.edit_allowed)

from __future__ import annotations

"""Pure decision functions for the shift-assignment rules.

Nothing in this module mutates a grid. The assignment state machine and the
transfer protocol ask these functions whether a move is legal and which
cells a selection forces to ``disabled``.

Rest rules between shifts:

* an employee works at most one shift per day;
* a Night shift on day D forbids Morning and Noon on D+1;
* a Morning or Noon shift on day D forbids Night on D-1.

Neighbouring days wrap across week boundaries.
"""

from dataclasses import dataclass
from typing import Iterable

from app.models.availability import CellStatus, DayOfWeek, ShiftKind
from app.services.schedule_grid import Cell, CellKey, ScheduleGrid
from app.services.week_calendar import SHIFTS, next_slot_day, previous_slot_day

EARLY_SHIFTS: tuple[ShiftKind, ...] = (ShiftKind.MORNING, ShiftKind.NOON)

REFUSAL_MESSAGES: dict[str, str] = {
    "not_available": "The employee did not declare availability for this shift.",
    "cell_disabled": "This shift is blocked by another assignment of the employee.",
    "already_selected": "The employee is already assigned to this shift.",
    "slot_full": "This shift already has the required number of employees.",
    "quota_reached": "The employee has reached the weekly shift target.",
    "adjacency_conflict": "The employee needs rest between a night shift and a morning or noon shift.",
    "same_employee": "The shift already belongs to this employee.",
    "assigned_that_day": "The employee already works another shift on that day.",
    "swap_conflict": "Swap not allowed: conflict with shift-before/after rules or existing assignments.",
    "below_selected": "The value cannot be lower than the number of employees already assigned.",
    "out_of_range": "The value is outside the allowed range.",
}


def refusal_message(reason: str) -> str:
    return REFUSAL_MESSAGES.get(reason, reason)


def selection_refusal(
    cell: Cell | None,
    slot_selected_count: int,
    slot_target: int,
    employee_selected_count: int,
    employee_target: int,
) -> str | None:
    """Reason why ``cell`` may not become selected, or ``None`` if it may."""
    if cell is None:
        return "not_available"
    if cell.status == CellStatus.DISABLED:
        return "cell_disabled"
    if cell.status == CellStatus.SELECTED:
        return "already_selected"
    if slot_selected_count >= slot_target:
        return "slot_full"
    if employee_selected_count >= employee_target:
        return "quota_reached"
    return None


def can_select(
    cell: Cell | None,
    slot_selected_count: int,
    slot_target: int,
    employee_selected_count: int,
    employee_target: int,
) -> bool:
    return (
        selection_refusal(
            cell, slot_selected_count, slot_target, employee_selected_count, employee_target
        )
        is None
    )


def cells_blocked_by(key: CellKey) -> list[CellKey]:
    """Cells that selecting ``key`` forces to ``disabled`` for the same employee."""
    blocked = [key._replace(shift=other) for other in SHIFTS if other != key.shift]

    if key.shift in EARLY_SHIFTS:
        prev_week, prev_day = previous_slot_day(key.week_key, key.day)
        blocked.append(CellKey(prev_week, key.user_id, ShiftKind.NIGHT, prev_day))
    elif key.shift == ShiftKind.NIGHT:
        next_week, next_day = next_slot_day(key.week_key, key.day)
        for early in EARLY_SHIFTS:
            blocked.append(CellKey(next_week, key.user_id, early, next_day))
    return blocked


def blocking_cells(grid: ScheduleGrid, key: CellKey) -> list[CellKey]:
    """Selected cells of the same employee that force ``key`` to stay disabled."""
    causes = [
        key._replace(shift=other)
        for other in SHIFTS
        if other != key.shift and grid.is_selected(key._replace(shift=other))
    ]

    if key.shift in EARLY_SHIFTS:
        prev_week, prev_day = previous_slot_day(key.week_key, key.day)
        night_before = CellKey(prev_week, key.user_id, ShiftKind.NIGHT, prev_day)
        if grid.is_selected(night_before):
            causes.append(night_before)
    elif key.shift == ShiftKind.NIGHT:
        next_week, next_day = next_slot_day(key.week_key, key.day)
        for early in EARLY_SHIFTS:
            morning_after = CellKey(next_week, key.user_id, early, next_day)
            if grid.is_selected(morning_after):
                causes.append(morning_after)
    return causes


def is_blocked(grid: ScheduleGrid, key: CellKey) -> bool:
    return bool(blocking_cells(grid, key))


@dataclass(frozen=True)
class SlotLoad:
    day: DayOfWeek
    shift: ShiftKind
    target: int
    selected: int
    candidates: int

    @property
    def need(self) -> int:
        return self.target - self.selected

    @property
    def criticality(self) -> float:
        return criticality(self.target, self.selected, self.candidates)


def criticality(target: int, selected: int, candidates: int) -> float:
    """Scarcity score of a slot: ``need / (candidates + 1) ** 2``.

    Zero when the slot is exactly staffed.
    """
    need = target - selected
    if need == 0:
        return 0.0
    return need / (candidates + 1) ** 2


def most_critical_slots(slots: Iterable[SlotLoad]) -> list[tuple[DayOfWeek, ShiftKind]]:
    """Slots sharing the highest criticality score.

    Exactly staffed slots are skipped. Ties are only reported for positive
    scores.
    """
    highest = float("-inf")
    critical: list[tuple[DayOfWeek, ShiftKind]] = []
    for slot in slots:
        if slot.need == 0:
            continue
        score = slot.criticality
        if score > highest:
            highest = score
            critical = [(slot.day, slot.shift)]
        elif score == highest and score > 0:
            critical.append((slot.day, slot.shift))
    return critical


def is_fully_staffed(targets: dict[tuple[DayOfWeek, ShiftKind], int], grid: ScheduleGrid) -> bool:
    """True iff every slot with a defined target has exactly that many selections."""
    return all(
        grid.slot_selected_count(shift, day) == required
        for (day, shift), required in targets.items()
    )


def offer_refusal(
    grid: ScheduleGrid,
    source: CellKey,
    recipient_id: int,
    *,
    max_weekly_shifts: int,
) -> str | None:
    """Reason why ``recipient_id`` should not be offered ``source``, or ``None``."""
    if recipient_id == source.user_id:
        return "same_employee"
    if grid.employee_selected_count(recipient_id) >= max_weekly_shifts:
        return "quota_reached"
    if grid.selected_shifts_on(recipient_id, source.day, source.week_key):
        return "assigned_that_day"

    if source.shift in EARLY_SHIFTS:
        prev_week, prev_day = previous_slot_day(source.week_key, source.day)
        if grid.is_selected(CellKey(prev_week, recipient_id, ShiftKind.NIGHT, prev_day)):
            return "adjacency_conflict"
    elif source.shift == ShiftKind.NIGHT:
        next_week, next_day = next_slot_day(source.week_key, source.day)
        if any(
            grid.is_selected(CellKey(next_week, recipient_id, early, next_day))
            for early in EARLY_SHIFTS
        ):
            return "adjacency_conflict"
    return None


def _has_early_selected(grid: ScheduleGrid, user_id: int, week_key: str, day: DayOfWeek) -> bool:
    return any(grid.is_selected(CellKey(week_key, user_id, early, day)) for early in EARLY_SHIFTS)


def swap_conflicts(grid: ScheduleGrid, mine: CellKey, theirs: CellKey) -> list[str]:
    """Names of the swap conflict conditions triggered by exchanging two cells.

    ``mine`` is the initiator's selected cell, ``theirs`` the counterpart's.
    Evaluated on the current grid, before anything moves.
    """
    me, them = mine.user_id, theirs.user_id
    conflicts: list[str] = []

    if grid.selected_shifts_on(me, theirs.day, theirs.week_key):
        conflicts.append("initiator_assigned_on_their_day")
    if grid.selected_shifts_on(them, mine.day, mine.week_key):
        conflicts.append("counterpart_assigned_on_my_day")

    their_next = next_slot_day(theirs.week_key, theirs.day)
    their_prev = previous_slot_day(theirs.week_key, theirs.day)
    my_next = next_slot_day(mine.week_key, mine.day)
    my_prev = previous_slot_day(mine.week_key, mine.day)

    if theirs.shift == ShiftKind.NIGHT and _has_early_selected(grid, me, *their_next):
        conflicts.append("initiator_morning_after_their_night")
    if mine.shift == ShiftKind.NIGHT and _has_early_selected(grid, them, *my_next):
        conflicts.append("counterpart_morning_after_my_night")
    if theirs.shift == ShiftKind.NIGHT and _has_early_selected(grid, me, *their_prev):
        conflicts.append("initiator_morning_before_their_night")
    if mine.shift == ShiftKind.NIGHT and _has_early_selected(grid, them, *my_prev):
        conflicts.append("counterpart_morning_before_my_night")
    if theirs.shift in EARLY_SHIFTS and grid.is_selected(
        CellKey(their_prev[0], me, ShiftKind.NIGHT, their_prev[1])
    ):
        conflicts.append("initiator_night_before_their_morning")
    if mine.shift in EARLY_SHIFTS and grid.is_selected(
        CellKey(my_prev[0], them, ShiftKind.NIGHT, my_prev[1])
    ):
        conflicts.append("counterpart_night_before_my_morning")

    return conflicts

from __future__ import annotations

"""Per-cell assignment state machine with adjacency cascades.

Every mutation of a cell status goes through :func:`select_cell` or
:func:`release_cell` so the rest rules stay consistent:

* selecting a cell disables every cell in :func:`cells_blocked_by`;
* releasing a cell re-enables each of those cells only when no other
  selected cell still blocks it.

Transfers and swaps are a release followed by a select on a working copy
of the grid; the caller persists ``grid.changes()`` only if no exception
escaped.
"""

from dataclasses import dataclass, field

from app.core.logging import logger
from app.models.availability import CellStatus
from app.services.schedule_errors import ScheduleValidationError, StaleTransferError
from app.services.schedule_grid import CellKey, ScheduleGrid
from app.services.shift_rules import (
    blocking_cells,
    cells_blocked_by,
    refusal_message,
    selection_refusal,
    swap_conflicts,
)


@dataclass(frozen=True)
class CellChange:
    key: CellKey
    before: CellStatus | None
    after: CellStatus


@dataclass
class ToggleOutcome:
    """Result of a toggle request.

    Attributes:
        key: The toggled cell.
        status: Status of the cell after the toggle.
        changed: False when the toggle was a no-op (disabled cell).
        cascade: Other cells whose status changed as a consequence.
    """

    key: CellKey
    status: CellStatus
    changed: bool
    cascade: list[CellChange] = field(default_factory=list)


def _refuse(reason: str, conflicts: list[str] | None = None) -> ScheduleValidationError:
    return ScheduleValidationError(reason, refusal_message(reason), conflicts=conflicts)


def _patch(grid: ScheduleGrid, key: CellKey, status: CellStatus, changes: list[CellChange]) -> None:
    before = grid.status(key)
    if grid.set_status(key, status):
        changes.append(CellChange(key, before, status))


def select_cell(grid: ScheduleGrid, key: CellKey) -> list[CellChange]:
    """Mark ``key`` selected and disable the cells it blocks.

    Only cells that currently exist and are not selected are disabled.
    """
    changes: list[CellChange] = []
    _patch(grid, key, CellStatus.SELECTED, changes)
    for blocked in cells_blocked_by(key):
        if grid.status(blocked) == CellStatus.DEFAULT:
            _patch(grid, blocked, CellStatus.DISABLED, changes)
    return changes


def release_cell(grid: ScheduleGrid, key: CellKey) -> list[CellChange]:
    """Return ``key`` to default and re-enable cells it no longer blocks."""
    changes: list[CellChange] = []
    _patch(grid, key, CellStatus.DEFAULT, changes)
    for blocked in cells_blocked_by(key):
        if grid.status(blocked) != CellStatus.DISABLED:
            continue
        if blocking_cells(grid, blocked):
            continue
        _patch(grid, blocked, CellStatus.DEFAULT, changes)
    return changes


def toggle(
    grid: ScheduleGrid,
    key: CellKey,
    *,
    slot_target: int,
    employee_target: int,
) -> ToggleOutcome:
    """Admin toggle of one cell.

    Args:
        grid: Grid to mutate in place.
        key: Cell to toggle (must belong to ``grid.week_key``).
        slot_target: Staffing target of the (day, shift) slot.
        employee_target: Weekly quota of the employee.

    Returns:
        ToggleOutcome describing the new status and the cascade.

    Raises:
        ScheduleValidationError: If a selection is refused. The grid is left
            untouched in that case.
    """
    cell = grid.get(key)
    if cell is None or (cell.status == CellStatus.DEFAULT and not cell.is_available):
        raise _refuse("not_available")

    if cell.status == CellStatus.DISABLED:
        return ToggleOutcome(key=key, status=cell.status, changed=False)

    if cell.status == CellStatus.SELECTED:
        changes = release_cell(grid, key)
        return ToggleOutcome(
            key=key,
            status=CellStatus.DEFAULT,
            changed=True,
            cascade=[c for c in changes if c.key != key],
        )

    if blocking_cells(grid, key):
        raise _refuse("adjacency_conflict")

    reason = selection_refusal(
        cell,
        grid.slot_selected_count(key.shift, key.day),
        slot_target,
        grid.employee_selected_count(key.user_id),
        employee_target,
    )
    if reason is not None:
        raise _refuse(reason)

    changes = select_cell(grid, key)
    return ToggleOutcome(
        key=key,
        status=CellStatus.SELECTED,
        changed=True,
        cascade=[c for c in changes if c.key != key],
    )


def transfer_cell(
    grid: ScheduleGrid,
    source: CellKey,
    recipient_id: int,
    *,
    max_weekly_shifts: int,
) -> CellKey:
    """Move a selected cell to another employee.

    The source is released with the reverse cascade first, then the
    recipient's cell for the same slot is selected with the forward
    cascade. A missing recipient cell is created as available.

    Returns:
        Key of the recipient's now-selected cell.

    Raises:
        StaleTransferError: If ``source`` is no longer selected.
        ScheduleValidationError: If the recipient cannot take the cell.
    """
    if not grid.is_selected(source):
        raise StaleTransferError(message="This shift has already been taken by someone else.")
    if recipient_id == source.user_id:
        raise _refuse("same_employee")

    target = source._replace(user_id=recipient_id)
    if grid.is_selected(target):
        raise _refuse("already_selected")
    if grid.employee_selected_count(recipient_id) >= max_weekly_shifts:
        raise _refuse("quota_reached")

    release_cell(grid, source)
    grid.create_cell(target, is_available=True)
    if blocking_cells(grid, target):
        raise _refuse("adjacency_conflict")
    select_cell(grid, target)

    logger.debug(
        "Transferred %s %s (%s) from user %s to user %s",
        source.shift,
        source.day,
        source.week_key,
        source.user_id,
        recipient_id,
    )
    return target


def swap_cells(grid: ScheduleGrid, mine: CellKey, theirs: CellKey) -> tuple[CellKey, CellKey]:
    """Exchange two selected cells between their owners.

    Returns:
        Tuple ``(initiator_new_key, counterpart_new_key)``.

    Raises:
        StaleTransferError: If either cell is no longer selected.
        ScheduleValidationError: On any swap conflict; the exception carries
            the triggered condition names in ``conflicts``.
    """
    if not (grid.is_selected(mine) and grid.is_selected(theirs)):
        raise StaleTransferError(message="One of the shifts has already changed.")
    if mine.user_id == theirs.user_id:
        raise _refuse("same_employee")

    conflicts = swap_conflicts(grid, mine, theirs)
    if conflicts:
        raise _refuse("swap_conflict", conflicts=conflicts)

    my_new = theirs._replace(user_id=mine.user_id)
    their_new = mine._replace(user_id=theirs.user_id)

    release_cell(grid, mine)
    release_cell(grid, theirs)
    for target in (my_new, their_new):
        grid.create_cell(target, is_available=True)
        if blocking_cells(grid, target):
            raise _refuse("swap_conflict", conflicts=["adjacency_after_release"])
        select_cell(grid, target)

    return my_new, their_new

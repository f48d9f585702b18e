from __future__ import annotations

"""In-memory availability grid for one schedule week.

The grid maps ``CellKey(week_key, user_id, shift, day)`` to an immutable
:class:`Cell`. Besides the cells of its own week it may hold the boundary
cells of the neighbouring weeks (previous Saturday, next Sunday) so the
adjacency rules can cross week boundaries. Every status change is recorded
so the store can write back exactly the cells that moved.
"""

from dataclasses import dataclass, replace
from typing import Iterator, Mapping, NamedTuple

from app.models.availability import CellStatus, DayOfWeek, ShiftKind


class CellKey(NamedTuple):
    week_key: str
    user_id: int
    shift: ShiftKind
    day: DayOfWeek


@dataclass(frozen=True)
class Cell:
    is_available: bool = False
    status: CellStatus = CellStatus.DEFAULT


class ScheduleGrid:
    """Copy-on-write grid of availability cells.

    Args:
        week_key: The week this grid is scoped to. Counts (slot staffing,
            employee load) only consider cells of this week.
        cells: Initial cells, possibly including neighbour-week boundary cells.
    """

    def __init__(self, week_key: str, cells: Mapping[CellKey, Cell] | None = None) -> None:
        self.week_key = week_key
        self._cells: dict[CellKey, Cell] = dict(cells or {})
        self._changed: set[CellKey] = set()
        self._created: set[CellKey] = set()

    def copy(self) -> "ScheduleGrid":
        clone = ScheduleGrid(self.week_key, self._cells)
        clone._changed = set(self._changed)
        clone._created = set(self._created)
        return clone

    def key(
        self,
        user_id: int,
        shift: ShiftKind,
        day: DayOfWeek,
        week_key: str | None = None,
    ) -> CellKey:
        return CellKey(week_key or self.week_key, user_id, ShiftKind(shift), DayOfWeek(day))

    def __contains__(self, key: object) -> bool:
        return key in self._cells

    def __iter__(self) -> Iterator[tuple[CellKey, Cell]]:
        return iter(self._cells.items())

    def get(self, key: CellKey) -> Cell | None:
        return self._cells.get(key)

    def status(self, key: CellKey) -> CellStatus | None:
        cell = self._cells.get(key)
        return cell.status if cell is not None else None

    def is_selected(self, key: CellKey) -> bool:
        return self.status(key) == CellStatus.SELECTED

    def set_status(self, key: CellKey, status: CellStatus) -> bool:
        """Patch the status of an existing cell.

        Returns:
            True if the cell exists and its status changed. Missing cells are
            left alone.
        """
        cell = self._cells.get(key)
        if cell is None or cell.status == status:
            return False
        self._cells[key] = replace(cell, status=status)
        self._changed.add(key)
        return True

    def create_cell(self, key: CellKey, *, is_available: bool = False) -> Cell:
        cell = self._cells.get(key)
        if cell is not None:
            return cell
        cell = Cell(is_available=is_available)
        self._cells[key] = cell
        self._created.add(key)
        return cell

    def declare(self, key: CellKey, is_available: bool) -> bool:
        """Record the employee's declared availability, keeping the status."""
        cell = self._cells.get(key)
        if cell is None:
            self._cells[key] = Cell(is_available=is_available)
            self._created.add(key)
            return True
        if cell.is_available == is_available:
            return False
        self._cells[key] = replace(cell, is_available=is_available)
        self._changed.add(key)
        return True

    def changes(self) -> dict[CellKey, Cell]:
        """Cells created or patched since the grid was loaded."""
        return {key: self._cells[key] for key in self._changed | self._created}

    def created_keys(self) -> set[CellKey]:
        return set(self._created)

    def snapshot(self) -> dict[CellKey, Cell]:
        return dict(self._cells)

    # Week-scoped views

    def user_ids(self) -> list[int]:
        return sorted({k.user_id for k in self._cells if k.week_key == self.week_key})

    def user_cells(self, user_id: int) -> dict[tuple[ShiftKind, DayOfWeek], Cell]:
        return {
            (k.shift, k.day): cell
            for k, cell in self._cells.items()
            if k.week_key == self.week_key and k.user_id == user_id
        }

    def slot_selected_count(self, shift: ShiftKind, day: DayOfWeek) -> int:
        return sum(
            1
            for k, cell in self._cells.items()
            if k.week_key == self.week_key
            and k.shift == shift
            and k.day == day
            and cell.status == CellStatus.SELECTED
        )

    def slot_candidate_count(self, shift: ShiftKind, day: DayOfWeek) -> int:
        """Employees available for the slot who are neither selected nor disabled."""
        return sum(
            1
            for k, cell in self._cells.items()
            if k.week_key == self.week_key
            and k.shift == shift
            and k.day == day
            and cell.is_available
            and cell.status == CellStatus.DEFAULT
        )

    def employee_selected_count(self, user_id: int) -> int:
        return sum(
            1
            for k, cell in self._cells.items()
            if k.week_key == self.week_key
            and k.user_id == user_id
            and cell.status == CellStatus.SELECTED
        )

    def selected_shifts_on(self, user_id: int, day: DayOfWeek, week_key: str | None = None) -> list[ShiftKind]:
        wk = week_key or self.week_key
        return [
            k.shift
            for k, cell in self._cells.items()
            if k.week_key == wk
            and k.user_id == user_id
            and k.day == day
            and cell.status == CellStatus.SELECTED
        ]

from __future__ import annotations

from pydantic import BaseModel, Field

from app.models.availability import CellStatus, DayOfWeek, ShiftKind


class CellOut(BaseModel):
    """One (shift, day) cell of an employee's sheet."""

    shift: ShiftKind
    day: DayOfWeek
    is_available: bool
    status: CellStatus


class AvailabilityGridOut(BaseModel):
    """An employee's availability sheet for one week."""

    week_key: str
    user_id: int
    name: str
    notes: str = ""
    cells: list[CellOut]
    selected_count: int = Field(ge=0)
    weekly_target: int = Field(ge=0)
    edit_allowed: bool


class AvailabilityIn(BaseModel):
    """Availability submission.

    ``available`` maps shift -> day -> declared availability. Cells left out
    are stored as unavailable. ``notes`` is left untouched when omitted.
    """

    available: dict[ShiftKind, dict[DayOfWeek, bool]] = Field(default_factory=dict)
    notes: str | None = Field(default=None, max_length=2000)


class NotesIn(BaseModel):
    notes: str = Field(max_length=2000)


class WeekAvailabilityOut(BaseModel):
    """All availability sheets of a company for one week (admin view)."""

    week_key: str
    edit_allowed: bool
    published: bool
    users: list[AvailabilityGridOut]

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from app.models.availability import CellStatus, DayOfWeek, ShiftKind
from app.schemas.availability import AvailabilityGridOut


class WeekInfo(BaseModel):
    """Calendar information for a week offset."""

    offset: int
    week_key: str
    start: date
    end: date
    label: str
    dates: list[tuple[DayOfWeek, date]]


class SlotOverview(BaseModel):
    """Staffing picture of one (day, shift) slot."""

    day: DayOfWeek
    shift: ShiftKind
    target: int | None = None
    selected: int = 0
    candidates: int = 0
    criticality: float = 0.0
    most_critical: bool = False


class ScheduleTotals(BaseModel):
    required_shifts: int = 0
    weekly_targets: int = 0
    assigned_shifts: int = 0


class ScheduleOverview(BaseModel):
    """Admin board for a week, or the published schedule for employees."""

    week_key: str
    label: str
    published: bool
    edit_allowed: bool
    fully_staffed: bool = False
    understaffed_after_publish: bool = False
    slots: list[SlotOverview] = Field(default_factory=list)
    employees: list[AvailabilityGridOut] = Field(default_factory=list)
    totals: ScheduleTotals = Field(default_factory=ScheduleTotals)


class ToggleRequest(BaseModel):
    user_id: int
    shift: ShiftKind
    day: DayOfWeek


class CellChangeOut(BaseModel):
    week_key: str
    user_id: int
    shift: ShiftKind
    day: DayOfWeek
    status: CellStatus


class ToggleResult(BaseModel):
    """Outcome of a toggle with the cascade it caused."""

    user_id: int
    shift: ShiftKind
    day: DayOfWeek
    status: CellStatus
    changed: bool
    cascade: list[CellChangeOut] = Field(default_factory=list)
    slot_selected: int
    employee_selected: int


class StaffingTargetsUpdate(BaseModel):
    """Staffing targets to set, day -> shift -> required head count."""

    targets: dict[DayOfWeek, dict[ShiftKind, int]]


class ShiftQuotasUpdate(BaseModel):
    """Weekly shift targets to set, user id -> max shifts."""

    quotas: dict[int, int]


class PublishUpdate(BaseModel):
    published: bool


class EditStatusUpdate(BaseModel):
    edit_allowed: bool


class PublishResult(BaseModel):
    week_key: str
    published: bool
    notified: int = 0
    stats_written: int = 0

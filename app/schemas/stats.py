from __future__ import annotations

from pydantic import BaseModel, Field


class ShiftMix(BaseModel):
    """Night / Shabbat / regular shift counts."""

    night_shifts: int = Field(default=0, ge=0)
    shabbat_shifts: int = Field(default=0, ge=0)
    regular_shifts: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.night_shifts + self.shabbat_shifts + self.regular_shifts


class WeeklyStatsRead(ShiftMix):
    year: int
    month: int
    week_key: str
    user_id: int

    model_config = {"from_attributes": True}


class StatsPeriod(BaseModel):
    """Stats rows of one user for a month or a year."""

    user_id: int
    year: int
    month: int | None = None
    weeks: list[WeeklyStatsRead]
    totals: ShiftMix


class StatsSummary(BaseModel):
    """Yearly summary: totals, per-week averages and share per bucket."""

    user_id: int
    year: int
    weeks: int
    totals: ShiftMix
    total_shifts: int
    average_per_week: dict[str, float]
    percentages: dict[str, float]

from __future__ import annotations

from sqlalchemy import Boolean, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base, TimestampMixin
from app.models.availability import DayOfWeek, ShiftKind, enum_values
from app.models.company import Company
from app.models.user import User


class ScheduleWeek(TimestampMixin, Base):
    """Per (company, week) partition row.

    Holds the publish and edit flags and owns the staffing targets and weekly
    shift quotas. Mutating services lock this row (``SELECT ... FOR UPDATE``)
    so toggles and transfers within one partition are serialized.

    Attributes:
        published: Whether the final schedule is visible to employees.
        edit_allowed: Whether employees may submit or change availability.
    """

    __tablename__ = "schedule_weeks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey(Company.id), nullable=False, index=True
    )
    week_key: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    published: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    edit_allowed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    staffing_targets: Mapped[list["StaffingTarget"]] = relationship(
        back_populates="schedule_week", cascade="all, delete-orphan"
    )
    shift_quotas: Mapped[list["ShiftQuota"]] = relationship(
        back_populates="schedule_week", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("company_id", "week_key", name="uq_schedule_week_partition"),
    )


class StaffingTarget(TimestampMixin, Base):
    """Required head count for one (day, shift) slot of a week."""

    __tablename__ = "staffing_targets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    schedule_week_id: Mapped[int] = mapped_column(
        ForeignKey(ScheduleWeek.id, ondelete="CASCADE"), nullable=False, index=True
    )
    schedule_week: Mapped[ScheduleWeek] = relationship(back_populates="staffing_targets")

    day: Mapped[DayOfWeek] = mapped_column(
        Enum(DayOfWeek, name="day_of_week", values_callable=enum_values),
        nullable=False,
    )
    shift: Mapped[ShiftKind] = mapped_column(
        Enum(ShiftKind, name="shift_kind", values_callable=enum_values),
        nullable=False,
    )
    required: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("schedule_week_id", "day", "shift", name="uq_staffing_target_slot"),
    )


class ShiftQuota(TimestampMixin, Base):
    """Maximum number of shifts an employee may hold in a week."""

    __tablename__ = "shift_quotas"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    schedule_week_id: Mapped[int] = mapped_column(
        ForeignKey(ScheduleWeek.id, ondelete="CASCADE"), nullable=False, index=True
    )
    schedule_week: Mapped[ScheduleWeek] = relationship(back_populates="shift_quotas")

    user_id: Mapped[int] = mapped_column(
        ForeignKey(User.id, ondelete="CASCADE"), nullable=False, index=True
    )
    max_shifts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("schedule_week_id", "user_id", name="uq_shift_quota_user"),
    )

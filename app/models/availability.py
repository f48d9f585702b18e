from __future__ import annotations

from enum import StrEnum

from sqlalchemy import Boolean, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base, TimestampMixin
from app.models.company import Company
from app.models.user import User


class ShiftKind(StrEnum):
    """Fixed, ordered set of daily shifts."""

    MORNING = "Morning"
    NOON = "Noon"
    EVENING = "Evening"
    NIGHT = "Night"


class DayOfWeek(StrEnum):
    """Days of a schedule week. Weeks start on Sunday."""

    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"


class CellStatus(StrEnum):
    DEFAULT = "default"
    SELECTED = "selected"
    DISABLED = "disabled"


def enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [m.value for m in enum_cls]


class AvailabilityWeek(TimestampMixin, Base):
    """One employee's availability sheet for one schedule week.

    Owned exclusively by (company_id, week_key, user_id). The individual
    shift x day cells live in :class:`AvailabilityCell`.

    Attributes:
        company_id: Company partition.
        week_key: Canonical week identifier (``week_YYYY_MM_DD``, Sunday).
        user_id: Employee owning the sheet.
        notes: Free-text remarks submitted with the availability.
    """

    __tablename__ = "availability_weeks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    company_id: Mapped[int] = mapped_column(
        ForeignKey(Company.id), nullable=False, index=True
    )
    week_key: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey(User.id, ondelete="CASCADE"), nullable=False, index=True
    )
    user: Mapped[User] = relationship(User)

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")

    cells: Mapped[list["AvailabilityCell"]] = relationship(
        back_populates="availability_week",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("company_id", "week_key", "user_id", name="uq_availability_week_owner"),
    )


class AvailabilityCell(TimestampMixin, Base):
    """Atomic (shift, day) cell of an availability sheet.

    ``is_available`` is declared by the employee at submission time; ``status``
    is owned by the assignment state machine and the transfer protocol.
    """

    __tablename__ = "availability_cells"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    availability_week_id: Mapped[int] = mapped_column(
        ForeignKey(AvailabilityWeek.id, ondelete="CASCADE"), nullable=False, index=True
    )
    availability_week: Mapped[AvailabilityWeek] = relationship(back_populates="cells")

    shift: Mapped[ShiftKind] = mapped_column(
        Enum(ShiftKind, name="shift_kind", values_callable=enum_values),
        nullable=False,
    )
    day: Mapped[DayOfWeek] = mapped_column(
        Enum(DayOfWeek, name="day_of_week", values_callable=enum_values),
        nullable=False,
    )
    is_available: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    status: Mapped[CellStatus] = mapped_column(
        Enum(CellStatus, name="cell_status", values_callable=enum_values),
        nullable=False,
        default=CellStatus.DEFAULT,
        server_default=CellStatus.DEFAULT.value,
    )

    __table_args__ = (
        UniqueConstraint("availability_week_id", "shift", "day", name="uq_availability_cell_slot"),
    )

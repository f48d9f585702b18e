from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base, TimestampMixin
from app.models.company import Company
from app.models.user import User


class WeeklyStats(TimestampMixin, Base):
    """Snapshot of one employee's shift mix for one published week.

    Rows are rewritten from the availability grid on publish and after every
    committed transfer; they are never incremented in place.
    """

    __tablename__ = "weekly_stats"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey(Company.id), nullable=False, index=True
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    week_key: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey(User.id, ondelete="CASCADE"), nullable=False, index=True
    )

    night_shifts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shabbat_shifts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    regular_shifts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "company_id", "year", "month", "week_key", "user_id", name="uq_weekly_stats_key"
        ),
    )

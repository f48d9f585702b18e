from __future__ import annotations

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base, TimestampMixin
from app.models.company import Company
from app.models.user import User


class ActivityLog(TimestampMixin, Base):
    """Audit log entry for scheduling actions.

    Args:
        company_id: Company partition the action belongs to.
        actor_id: Optional id of the user that performed the action. ``NULL``
            is allowed for system-initiated actions.
        action: Machine-friendly action label (e.g. ``"schedule_published"``,
            ``"shift_transferred"``).
        target_type: Logical target type (e.g. ``"schedule_week"``).
        target_id: Optional primary key of the target entity when applicable.
        details: Optional JSON payload such as
            ``{"week_key": "week_2025_08_03", "cascade": [...]}``.
        batch_id: Optional correlation identifier grouping entries written by
            one high-level operation.
    """

    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    company_id: Mapped[int] = mapped_column(
        ForeignKey(Company.id), nullable=False, index=True
    )
    actor_id: Mapped[int | None] = mapped_column(
        ForeignKey(User.id, ondelete="SET NULL"), nullable=True, index=True
    )
    actor: Mapped[User | None] = relationship(User)

    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    target_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    target_id: Mapped[int | None] = mapped_column(nullable=True, index=True)

    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base, TimestampMixin
from app.models.company import Company
from app.models.user import User


class Notification(TimestampMixin, Base):
    """In-app notification delivered to one user.

    Args:
        message: Human readable text.
        link: Frontend path the notification points to.
        meta: Optional JSON payload. Transfer intents (offers, approval
            requests) travel here and are read back when the user responds.
        read: Whether the user has opened the notification.
        resolved_at: Set once a carried transfer intent has been consumed
            (accepted or declined); later responses are reported as stale.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey(Company.id), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey(User.id, ondelete="CASCADE"), nullable=False, index=True
    )

    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    read: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

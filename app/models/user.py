from __future__ import annotations

from enum import StrEnum

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base, TimestampMixin
from app.models.company import Company


class User(TimestampMixin, Base):
    """Employee directory entry.

    Every user belongs to exactly one company. The ``admin`` flag decides the
    role used by the scheduling core: admins allocate shifts, publish weeks
    and arbitrate transfers; everyone else is an employee.
    """

    __tablename__ = "users"

    class Role(StrEnum):
        EMPLOYEE = "employee"
        ADMIN = "admin"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    admin: Mapped[bool] = mapped_column(default=False, server_default="false")
    company_id: Mapped[int] = mapped_column(
        ForeignKey(Company.id), nullable=False, index=True
    )

    @property
    def role(self) -> "User.Role":
        return User.Role.ADMIN if self.admin else User.Role.EMPLOYEE

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

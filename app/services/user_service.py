from __future__ import annotations

"""Read-only employee directory used by the scheduling services."""

from typing import Sequence

from fastapi import HTTPException, status
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.models.user import User
from app.services.schedule_errors import SchedulePersistenceError


async def _scalars(db: AsyncSession, stmt: Select[tuple[User]]) -> list[User]:
    try:
        rows: Sequence[User] = (await db.execute(stmt)).scalars().all()
    except SQLAlchemyError as exc:
        logger.warning("Employee directory lookup failed", exc_info=True)
        raise SchedulePersistenceError("persistence_failed") from exc
    return list(rows)


async def list_company_users(db: AsyncSession, company_id: int) -> list[User]:
    """List all users of a company ordered by name.

    Args:
        db: Async SQLAlchemy session.
        company_id: Company partition.

    Returns:
        Users ordered by full_name, then email.
    """
    stmt: Select[tuple[User]] = (
        select(User)
        .where(User.company_id == company_id)
        .order_by(User.full_name, User.email)
    )
    return await _scalars(db, stmt)


async def get_company_user(db: AsyncSession, company_id: int, user_id: int) -> User:
    """Fetch one user of the company.

    Raises:
        HTTPException: 404 if the user does not exist in this company.
    """
    stmt: Select[tuple[User]] = select(User).where(
        User.id == user_id, User.company_id == company_id
    )
    users = await _scalars(db, stmt)
    if not users:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user_not_found")
    return users[0]

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.models.user import User
from app.services.auth_service import decode_token
from app.services.schedule_errors import ScheduleAuthorizationError
from db.session import get_db


_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """Request-scoped identity handed to every scheduling service call.

    Attributes:
        company_id: Company partition the actor belongs to.
        user_id: Id of the authenticated user.
        role: ``admin`` or ``employee``.
    """

    company_id: int
    user_id: int
    role: User.Role

    @property
    def is_admin(self) -> bool:
        return self.role == User.Role.ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(company_id=user.company_id, user_id=user.id, role=user.role)


def ensure_admin(actor: Actor) -> None:
    """Refuse the operation unless ``actor`` is an admin.

    Raises:
        ScheduleAuthorizationError: If the actor is an employee.
    """
    if not actor.is_admin:
        raise ScheduleAuthorizationError("admin_required")


def ensure_self_or_admin(actor: Actor, user_id: int) -> None:
    if actor.user_id != user_id and not actor.is_admin:
        raise ScheduleAuthorizationError("not_owner")


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> User:
    """Resolve the current authenticated `User` from a Bearer JWT.

    Args:
        db: Async SQLAlchemy session.
        creds: Bearer token extracted from the request.

    Returns:
        The `User` instance corresponding to the JWT subject (email).
    """

    if creds is None or creds.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        claims = decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    if claims.get("typ") == "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    subject = claims.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        result = await db.execute(select(User).where(User.email == subject))
    except SQLAlchemyError:
        logger.warning("User lookup failed during authentication", exc_info=True)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    user: User | None = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return user


async def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(current_user)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Ensure the current actor has admin privileges.

    Args:
        actor: Injected request identity.

    Returns:
        The same `Actor` if it is an admin, otherwise raises 403.
    """

    if not actor.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return actor

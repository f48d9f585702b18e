from __future__ import annotations

from datetime import date
from typing import Annotated, TypeAlias

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.security import Actor, get_current_actor, get_current_user, require_admin
from app.services.week_calendar import is_week_key
from db.session import get_db


def get_today() -> date:
    """Snapshot of "today" taken once per request for week-offset math."""
    return date.today()


DbDep: TypeAlias = Annotated[AsyncSession, Depends(get_db)]
UserDep: TypeAlias = Annotated[User, Depends(get_current_user)]
ActorDep: TypeAlias = Annotated[Actor, Depends(get_current_actor)]
AdminDep: TypeAlias = Annotated[Actor, Depends(require_admin)]
TodayDep: TypeAlias = Annotated[date, Depends(get_today)]


def valid_week_key(week_key: str) -> str:
    """Path dependency rejecting malformed week keys with 422."""
    if not is_week_key(week_key):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="invalid_week_key"
        )
    return week_key


WeekKeyDep: TypeAlias = Annotated[str, Depends(valid_week_key)]

from __future__ import annotations

"""In-app notification sink.

``send_notification`` only adds the row to the session; the calling service
commits it together with the change that triggered it.
"""

from datetime import datetime, timezone
from typing import Any, Sequence

from fastapi import HTTPException, status
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.models.notification import Notification
from app.services.availability_service import commit_or_rollback
from app.services.schedule_errors import SchedulePersistenceError
from app.services.security import Actor
from core.settings import get_settings


def schedule_link(week_key: str) -> str:
    """Link to the schedule board of ``week_key`` in the web client."""
    return f"{get_settings().frontend_url.rstrip('/')}/schedule?week={week_key}"


def send_notification(
    db: AsyncSession,
    *,
    company_id: int,
    user_id: int,
    message: str,
    link: str = "",
    meta: dict[str, Any] | None = None,
) -> Notification:
    """Queue a notification for ``user_id`` in the current transaction."""
    notification = Notification(
        company_id=company_id,
        user_id=user_id,
        message=message,
        link=link,
        meta=meta,
        read=False,
    )
    db.add(notification)
    return notification


async def list_notifications(
    db: AsyncSession, *, actor: Actor, unread_only: bool = False, limit: int = 100
) -> list[Notification]:
    """Newest notifications of the actor first."""
    stmt: Select[tuple[Notification]] = (
        select(Notification)
        .where(
            Notification.company_id == actor.company_id,
            Notification.user_id == actor.user_id,
        )
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    try:
        rows: Sequence[Notification] = (await db.execute(stmt)).scalars().all()
    except SQLAlchemyError as exc:
        logger.warning("Failed to list notifications", exc_info=True)
        raise SchedulePersistenceError("persistence_failed") from exc
    return list(rows)


async def get_own_notification(
    db: AsyncSession, *, actor: Actor, notification_id: int, lock: bool = False
) -> Notification:
    """Fetch a notification addressed to the actor.

    Raises:
        HTTPException: 404 if it does not exist or belongs to someone else.
    """
    stmt: Select[tuple[Notification]] = select(Notification).where(
        Notification.id == notification_id,
        Notification.company_id == actor.company_id,
        Notification.user_id == actor.user_id,
    )
    if lock:
        stmt = stmt.with_for_update()
    try:
        notification = (await db.execute(stmt)).scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.warning("Failed to load notification %s", notification_id, exc_info=True)
        raise SchedulePersistenceError("persistence_failed") from exc
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="notification_not_found")
    return notification


async def mark_read(db: AsyncSession, *, actor: Actor, notification_id: int) -> Notification:
    notification = await get_own_notification(db, actor=actor, notification_id=notification_id)
    if not notification.read:
        notification.read = True
        await commit_or_rollback(db)
    return notification


def resolve(notification: Notification) -> None:
    """Mark the transfer intent carried by ``notification`` as consumed."""
    notification.resolved_at = datetime.now(timezone.utc)
    notification.read = True


async def resolve_intent(db: AsyncSession, *, company_id: int, intent_id: str) -> int:
    """Resolve every open notification carrying ``intent_id``.

    Used when one admin decides an approval request that was sent to all
    admins of the company.

    Returns:
        Number of notifications resolved.
    """
    stmt: Select[tuple[Notification]] = select(Notification).where(
        Notification.company_id == company_id,
        Notification.resolved_at.is_(None),
        Notification.meta["intent_id"].as_string() == intent_id,
    )
    try:
        rows: Sequence[Notification] = (await db.execute(stmt)).scalars().all()
    except SQLAlchemyError as exc:
        logger.warning("Failed to resolve intent %s", intent_id, exc_info=True)
        raise SchedulePersistenceError("persistence_failed") from exc
    for row in rows:
        resolve(row)
    return len(rows)

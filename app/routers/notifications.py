from __future__ import annotations

from fastapi import APIRouter, Query

from app.deps import ActorDep, DbDep
from app.schemas.notification import NotificationRead
from app.services.notification_service import list_notifications, mark_read
from app.services.schedule_errors import ScheduleError, to_http_exception

router = APIRouter()


@router.get("", response_model=list[NotificationRead])
async def get_notifications(
    actor: ActorDep,
    db: DbDep,
    unread_only: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
) -> list[NotificationRead]:
    """Notifications of the current user, newest first."""

    try:
        rows = await list_notifications(db, actor=actor, unread_only=unread_only, limit=limit)
    except ScheduleError as exc:
        raise to_http_exception(exc)
    return [NotificationRead.model_validate(r, from_attributes=True) for r in rows]


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def read_notification(notification_id: int, actor: ActorDep, db: DbDep) -> NotificationRead:
    try:
        row = await mark_read(db, actor=actor, notification_id=notification_id)
    except ScheduleError as exc:
        raise to_http_exception(exc)
    return NotificationRead.model_validate(row, from_attributes=True)

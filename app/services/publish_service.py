from __future__ import annotations

"""Publish controller for a week's schedule.

Publishing requires every defined staffing target to be met exactly; on
success the weekly stats of every employee are snapshotted and every
employee is notified. Unpublishing is always allowed.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.schemas.schedule import PublishResult
from app.services.activity_log_service import log_activity
from app.services.availability_service import commit_or_rollback, load_week_state, save_week_state
from app.services.notification_service import schedule_link, send_notification
from app.services.schedule_errors import ScheduleValidationError
from app.services.security import Actor, ensure_admin
from app.services.shift_rules import is_fully_staffed
from app.services.stats_service import snapshot_weekly_stats
from app.services.user_service import list_company_users
from app.services.week_calendar import format_range_label, week_range_for_key


async def set_published(
    db: AsyncSession, *, actor: Actor, week_key: str, published: bool
) -> PublishResult:
    """Publish or unpublish the schedule of ``week_key``.

    Args:
        db: Async SQLAlchemy session.
        actor: Request identity; must be an admin.
        week_key: Week to publish.
        published: Target publish state.

    Returns:
        PublishResult with the number of notifications and stats records
        written (both zero when unpublishing).

    Raises:
        ScheduleValidationError: If publishing while not fully staffed. No
            state changes in that case.
    """
    ensure_admin(actor)
    state = await load_week_state(db, actor.company_id, week_key, lock=True)

    if not published:
        state.published = False
        await save_week_state(db, state)
        await log_activity(
            db,
            company_id=actor.company_id,
            actor_id=actor.user_id,
            action="schedule_unpublished",
            target_type="schedule_week",
            target_id=state.schedule_week.id if state.schedule_week else None,
            details={"week_key": week_key},
        )
        await commit_or_rollback(db)
        logger.info("Schedule %s unpublished by user %s", week_key, actor.user_id)
        return PublishResult(week_key=week_key, published=False)

    if not is_fully_staffed(state.staffing, state.grid):
        logger.warning("Publish of %s refused: not fully staffed", week_key)
        raise ScheduleValidationError(
            "not_fully_staffed",
            "The schedule can only be published when every shift has exactly "
            "the required number of employees.",
        )

    users = await list_company_users(db, actor.company_id)
    state.published = True
    await save_week_state(db, state)

    written = await snapshot_weekly_stats(
        db,
        company_id=actor.company_id,
        grid=state.grid,
        user_ids=[u.id for u in users],
    )

    label = format_range_label(*week_range_for_key(week_key))
    for user in users:
        send_notification(
            db,
            company_id=actor.company_id,
            user_id=user.id,
            message=f"Weekly schedule for {label} has been published.",
            link=schedule_link(week_key),
        )

    await log_activity(
        db,
        company_id=actor.company_id,
        actor_id=actor.user_id,
        action="schedule_published",
        target_type="schedule_week",
        target_id=state.schedule_week.id if state.schedule_week else None,
        details={"week_key": week_key, "notified": len(users)},
    )
    await commit_or_rollback(db)
    logger.info("Schedule %s published, %s employees notified", week_key, len(users))
    return PublishResult(
        week_key=week_key, published=True, notified=len(users), stats_written=written
    )

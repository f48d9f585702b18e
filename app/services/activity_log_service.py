from __future__ import annotations

"""Audit trail entries for scheduling changes.

Entries are only added to the session; they are committed together with the
change they describe by the caller's ``commit_or_rollback``, so a rolled-back
toggle or transfer never leaves an orphaned audit row behind.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity_log import ActivityLog


async def log_activity(
    db: AsyncSession,
    *,
    company_id: int,
    actor_id: int | None,
    action: str,
    target_type: str,
    target_id: int | None = None,
    details: dict[str, Any] | None = None,
    batch_id: str | None = None,
) -> ActivityLog:
    """Queue one ``ActivityLog`` entry on the session.

    Args:
        db: Async SQLAlchemy session.
        company_id: Company partition of the action.
        actor_id: User that performed the action, if any.
        action: Action label, e.g. ``"schedule_published"`` or ``"shift_toggled"``.
        target_type: ``"schedule_week"`` or ``"availability_cell"``.
        target_id: Primary key of the affected row when it is already known.
        details: JSON-serializable context such as the week key and the cascade.
        batch_id: Correlates the entries of one transfer (e.g. its intent id).

    Returns:
        The pending ``ActivityLog``.
    """

    entry = ActivityLog(
        company_id=company_id,
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=details or None,
        batch_id=batch_id,
    )
    db.add(entry)
    return entry

from __future__ import annotations

from fastapi import APIRouter

from app.deps import ActorDep, AdminDep, DbDep, TodayDep, WeekKeyDep
from app.schemas.schedule import (
    EditStatusUpdate,
    PublishResult,
    PublishUpdate,
    ScheduleOverview,
    ShiftQuotasUpdate,
    StaffingTargetsUpdate,
    ToggleRequest,
    ToggleResult,
    WeekInfo,
)
from app.services import publish_service, schedule_service
from app.services.schedule_errors import ScheduleError, to_http_exception

router = APIRouter()


@router.get("/weeks/{offset}", response_model=WeekInfo)
async def get_week(offset: int, _: ActorDep, today: TodayDep) -> WeekInfo:
    """Week key, date range and dates for a week offset from the current week."""

    return schedule_service.get_week_info(offset, today)


@router.get("/{week_key}", response_model=ScheduleOverview)
async def get_schedule(week_key: WeekKeyDep, actor: ActorDep, db: DbDep) -> ScheduleOverview:
    """Scheduling board for admins, final schedule for employees once published."""

    try:
        return await schedule_service.get_schedule_overview(db, actor=actor, week_key=week_key)
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.post("/{week_key}/toggle", response_model=ToggleResult)
async def toggle_cell(
    week_key: WeekKeyDep, payload: ToggleRequest, admin: AdminDep, db: DbDep
) -> ToggleResult:
    """Toggle one employee's cell between default and selected.

    Args:
        week_key: Week being scheduled.
        payload: Employee, shift and day of the cell.
        admin: Injected admin identity.
        db: Async SQLAlchemy session.

    Returns:
        The new status with every cascaded cell change.
    """

    try:
        return await schedule_service.toggle_cell(
            db, actor=admin, week_key=week_key, payload=payload
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.patch("/{week_key}/staffing-targets", response_model=StaffingTargetsUpdate)
async def update_staffing_targets(
    week_key: WeekKeyDep, payload: StaffingTargetsUpdate, admin: AdminDep, db: DbDep
) -> StaffingTargetsUpdate:
    try:
        return await schedule_service.update_staffing_targets(
            db, actor=admin, week_key=week_key, payload=payload
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.patch("/{week_key}/shift-quotas", response_model=ShiftQuotasUpdate)
async def update_shift_quotas(
    week_key: WeekKeyDep, payload: ShiftQuotasUpdate, admin: AdminDep, db: DbDep
) -> ShiftQuotasUpdate:
    try:
        return await schedule_service.update_shift_quotas(
            db, actor=admin, week_key=week_key, payload=payload
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.put("/{week_key}/publish", response_model=PublishResult)
async def set_publish_status(
    week_key: WeekKeyDep, payload: PublishUpdate, admin: AdminDep, db: DbDep
) -> PublishResult:
    """Publish (only when fully staffed) or unpublish the week's schedule."""

    try:
        return await publish_service.set_published(
            db, actor=admin, week_key=week_key, published=payload.published
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.put("/{week_key}/edit-status", response_model=EditStatusUpdate)
async def set_edit_status(
    week_key: WeekKeyDep, payload: EditStatusUpdate, admin: AdminDep, db: DbDep
) -> EditStatusUpdate:
    try:
        return await schedule_service.set_edit_status(
            db, actor=admin, week_key=week_key, payload=payload
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)

from __future__ import annotations

from fastapi import APIRouter

from app.deps import ActorDep, AdminDep, DbDep, WeekKeyDep
from app.schemas.availability import (
    AvailabilityGridOut,
    AvailabilityIn,
    NotesIn,
    WeekAvailabilityOut,
)
from app.services.availability_service import (
    get_user_availability,
    list_week_availability,
    save_notes,
    submit_availability,
)
from app.services.schedule_errors import ScheduleError, to_http_exception

router = APIRouter()


@router.get("/{week_key}", response_model=WeekAvailabilityOut)
async def list_availability(week_key: WeekKeyDep, admin: AdminDep, db: DbDep) -> WeekAvailabilityOut:
    """All availability sheets of the company for a week."""

    try:
        return await list_week_availability(db, actor=admin, week_key=week_key)
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.get("/{week_key}/me", response_model=AvailabilityGridOut)
async def get_my_availability(week_key: WeekKeyDep, actor: ActorDep, db: DbDep) -> AvailabilityGridOut:
    try:
        return await get_user_availability(
            db, actor=actor, week_key=week_key, user_id=actor.user_id
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.put("/{week_key}/me", response_model=AvailabilityGridOut)
async def submit_my_availability(
    week_key: WeekKeyDep, payload: AvailabilityIn, actor: ActorDep, db: DbDep
) -> AvailabilityGridOut:
    """Submit the caller's availability; only while the week is open for editing."""

    try:
        return await submit_availability(
            db, actor=actor, week_key=week_key, user_id=actor.user_id, payload=payload
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.put("/{week_key}/users/{user_id}", response_model=AvailabilityGridOut)
async def submit_user_availability(
    week_key: WeekKeyDep, user_id: int, payload: AvailabilityIn, admin: AdminDep, db: DbDep
) -> AvailabilityGridOut:
    """Submit availability on behalf of an employee (admin)."""

    try:
        return await submit_availability(
            db, actor=admin, week_key=week_key, user_id=user_id, payload=payload
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.put("/{week_key}/users/{user_id}/notes", response_model=AvailabilityGridOut)
async def update_notes(
    week_key: WeekKeyDep, user_id: int, payload: NotesIn, actor: ActorDep, db: DbDep
) -> AvailabilityGridOut:
    try:
        return await save_notes(
            db, actor=actor, week_key=week_key, user_id=user_id, notes=payload.notes
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)

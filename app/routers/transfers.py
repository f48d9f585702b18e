from __future__ import annotations

from fastapi import APIRouter

from app.deps import ActorDep, DbDep, WeekKeyDep
from app.schemas.transfer import (
    IntentResponse,
    OfferRequest,
    OfferResult,
    SwapRequest,
    SwapResult,
)
from app.services import transfer_service
from app.services.schedule_errors import ScheduleError, to_http_exception

router = APIRouter()


@router.post("/{week_key}/offers", response_model=OfferResult)
async def offer_shift(
    week_key: WeekKeyDep, payload: OfferRequest, actor: ActorDep, db: DbDep
) -> OfferResult:
    """Offer one of your assigned shifts to eligible colleagues or to one person."""

    try:
        return await transfer_service.offer_shift(
            db, actor=actor, week_key=week_key, payload=payload
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.post("/{week_key}/swaps", response_model=SwapResult)
async def propose_swap(
    week_key: WeekKeyDep, payload: SwapRequest, actor: ActorDep, db: DbDep
) -> SwapResult:
    """Propose a swap; admins swap directly, employees wait for approval."""

    try:
        return await transfer_service.propose_swap(
            db, actor=actor, week_key=week_key, payload=payload
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.post("/intents/{notification_id}/accept", response_model=IntentResponse)
async def accept_intent(notification_id: int, actor: ActorDep, db: DbDep) -> IntentResponse:
    try:
        return await transfer_service.respond_to_intent(
            db, actor=actor, notification_id=notification_id, accept=True
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)


@router.post("/intents/{notification_id}/decline", response_model=IntentResponse)
async def decline_intent(notification_id: int, actor: ActorDep, db: DbDep) -> IntentResponse:
    try:
        return await transfer_service.respond_to_intent(
            db, actor=actor, notification_id=notification_id, accept=False
        )
    except ScheduleError as exc:
        raise to_http_exception(exc)

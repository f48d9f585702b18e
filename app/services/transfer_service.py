from __future__ import annotations

"""Shift transfer protocol: offers, swaps and admin arbitration.

A transfer intent is carried in the ``meta`` of the notification that asks
someone to act on it. Responding to an intent always re-reads the grid under
the partition lock and re-checks that the source cells are still selected,
so a replayed or raced intent is reported as no longer available instead of
moving a shift twice. Consumed intents are marked resolved on their
notifications.
"""

from uuid import uuid4

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.models.notification import Notification
from app.models.user import User
from app.schemas.transfer import (
    INTENT_ADAPTER,
    IntentResponse,
    OfferRequest,
    OfferResult,
    ShiftOfferIntent,
    SwapApprovalIntent,
    SwapRequest,
    SwapResult,
    TransferApprovalIntent,
)
from app.services.activity_log_service import log_activity
from app.services.assignment_machine import swap_cells, transfer_cell
from app.services.availability_service import (
    WeekState,
    commit_or_rollback,
    load_week_state,
    save_week_state,
)
from app.services.notification_service import (
    get_own_notification,
    resolve,
    resolve_intent,
    schedule_link,
    send_notification,
)
from app.services.schedule_errors import ScheduleValidationError, StaleTransferError
from app.services.schedule_grid import CellKey
from app.services.security import Actor, ensure_admin
from app.services.shift_rules import offer_refusal, refusal_message, swap_conflicts
from app.services.stats_service import snapshot_weekly_stats
from app.services.user_service import list_company_users
from app.services.week_calendar import format_range_label, week_range_for_key
from core.settings import get_settings


def _names(users: list[User]) -> dict[int, str]:
    return {u.id: u.display_name for u in users}


def _acting_for(actor: Actor, user_id: int | None) -> int:
    """Employee on whose behalf the actor acts; only admins may act for others."""
    if user_id is None or user_id == actor.user_id:
        return actor.user_id
    ensure_admin(actor)
    return user_id


async def offer_shift(
    db: AsyncSession, *, actor: Actor, week_key: str, payload: OfferRequest
) -> OfferResult:
    """Offer a selected shift to eligible colleagues or to one named person.

    Without ``to_user_id`` every colleague passing :func:`offer_refusal` is
    notified. With ``to_user_id`` only that person is notified and the
    eligibility scan is skipped on purpose; the move is still validated when
    it commits.

    Raises:
        ScheduleValidationError: If the shift is not assigned to the offering
            employee or nobody can take it.
    """
    from_user_id = _acting_for(actor, payload.from_user_id)
    state = await load_week_state(db, actor.company_id, week_key, lock=True)
    source = CellKey(week_key, from_user_id, payload.shift, payload.day)
    if not state.grid.is_selected(source):
        raise ScheduleValidationError("not_assigned", "Only an assigned shift can be offered.")

    users = await list_company_users(db, actor.company_id)
    names = _names(users)

    if payload.to_user_id is not None:
        if payload.to_user_id == from_user_id:
            raise ScheduleValidationError("same_employee", refusal_message("same_employee"))
        if payload.to_user_id not in names:
            raise ScheduleValidationError("unknown_employee", "Unknown employee.")
        recipients = [payload.to_user_id]
    else:
        max_shifts = get_settings().max_weekly_shifts
        recipients = [
            u.id
            for u in users
            if offer_refusal(state.grid, source, u.id, max_weekly_shifts=max_shifts) is None
        ]
    if not recipients:
        raise ScheduleValidationError(
            "no_eligible_recipient", "No colleague can currently take this shift."
        )

    intent = ShiftOfferIntent(
        intent_id=uuid4().hex,
        week_key=week_key,
        from_user_id=from_user_id,
        shift=payload.shift,
        day=payload.day,
        explicit=payload.to_user_id is not None,
    )
    label = format_range_label(*week_range_for_key(week_key))
    from_name = names.get(from_user_id, "a colleague")
    for recipient_id in recipients:
        send_notification(
            db,
            company_id=actor.company_id,
            user_id=recipient_id,
            message=(
                f"You are offered to take {payload.shift} shift on {payload.day} "
                f"(Week: {label}) from {from_name}."
            ),
            link=schedule_link(week_key),
            meta=intent.model_dump(mode="json"),
        )

    await log_activity(
        db,
        company_id=actor.company_id,
        actor_id=actor.user_id,
        action="shift_offered",
        target_type="availability_cell",
        target_id=from_user_id,
        details={**intent.model_dump(mode="json"), "recipients": recipients},
        batch_id=intent.intent_id,
    )
    await commit_or_rollback(db)
    logger.info(
        "User %s offered %s/%s in %s to %s recipients",
        from_user_id,
        payload.day,
        payload.shift,
        week_key,
        len(recipients),
    )
    return OfferResult(week_key=week_key, recipients=recipients)


async def propose_swap(
    db: AsyncSession, *, actor: Actor, week_key: str, payload: SwapRequest
) -> SwapResult:
    """Propose exchanging two selected shifts.

    The eight swap conflict conditions are checked first; any hit refuses
    the proposal before anything is sent. Admin swaps commit immediately,
    otherwise every admin receives an approval request.
    """
    initiator_id = _acting_for(actor, payload.from_user_id)
    state = await load_week_state(db, actor.company_id, week_key, lock=True)
    mine = CellKey(week_key, initiator_id, payload.shift, payload.day)
    theirs = CellKey(week_key, payload.their_user_id, payload.their_shift, payload.their_day)

    if not (state.grid.is_selected(mine) and state.grid.is_selected(theirs)):
        raise ScheduleValidationError("not_assigned", "Both shifts must be assigned to swap them.")
    if initiator_id == payload.their_user_id:
        raise ScheduleValidationError("same_employee", refusal_message("same_employee"))

    conflicts = swap_conflicts(state.grid, mine, theirs)
    if conflicts:
        logger.warning(
            "Swap between users %s and %s in %s refused: %s",
            initiator_id,
            payload.their_user_id,
            week_key,
            ", ".join(conflicts),
        )
        raise ScheduleValidationError(
            "swap_conflict", refusal_message("swap_conflict"), conflicts=conflicts
        )

    users = await list_company_users(db, actor.company_id)
    names = _names(users)

    if actor.is_admin:
        await _commit_swap(db, state, actor, mine, theirs, names)
        await commit_or_rollback(db)
        return SwapResult(week_key=week_key, committed=True, pending_approval=False)

    intent = SwapApprovalIntent(
        intent_id=uuid4().hex,
        week_key=week_key,
        initiator_id=initiator_id,
        initiator_shift=payload.shift,
        initiator_day=payload.day,
        counterpart_id=payload.their_user_id,
        counterpart_shift=payload.their_shift,
        counterpart_day=payload.their_day,
    )
    message = (
        f"{names.get(initiator_id, 'An employee')} requested to swap their {payload.shift} "
        f"shift on {payload.day} with {names.get(payload.their_user_id, 'another employee')}'s "
        f"{payload.their_shift} shift on {payload.their_day}."
    )
    for admin in (u for u in users if u.admin):
        send_notification(
            db,
            company_id=actor.company_id,
            user_id=admin.id,
            message=message,
            link=schedule_link(week_key),
            meta=intent.model_dump(mode="json"),
        )
    await log_activity(
        db,
        company_id=actor.company_id,
        actor_id=actor.user_id,
        action="swap_requested",
        target_type="availability_cell",
        target_id=initiator_id,
        details=intent.model_dump(mode="json"),
        batch_id=intent.intent_id,
    )
    await commit_or_rollback(db)
    return SwapResult(week_key=week_key, committed=False, pending_approval=True)


async def respond_to_intent(
    db: AsyncSession, *, actor: Actor, notification_id: int, accept: bool
) -> IntentResponse:
    """Accept or decline the transfer intent carried by a notification.

    Raises:
        ScheduleValidationError: If the notification carries no intent, or
            the move is refused by the rules.
        StaleTransferError: If the intent was already consumed or its source
            shift changed in the meantime.
        ScheduleAuthorizationError: If a non-admin answers an approval request.
    """
    notification = await get_own_notification(
        db, actor=actor, notification_id=notification_id, lock=True
    )
    if not notification.meta or "kind" not in notification.meta:
        raise ScheduleValidationError("not_actionable", "This notification has nothing to respond to.")
    try:
        intent = INTENT_ADAPTER.validate_python(notification.meta)
    except ValidationError:
        raise ScheduleValidationError("not_actionable", "This notification has nothing to respond to.")

    if notification.resolved_at is not None:
        logger.warning("Replay of consumed intent %s refused", intent.intent_id)
        raise StaleTransferError()

    if isinstance(intent, ShiftOfferIntent):
        return await _respond_to_offer(db, actor, notification, intent, accept)

    ensure_admin(actor)
    if isinstance(intent, TransferApprovalIntent):
        return await _decide_transfer(db, actor, notification, intent, accept)
    return await _decide_swap(db, actor, notification, intent, accept)


async def _discard_stale(
    db: AsyncSession,
    actor: Actor,
    notification: Notification,
    intent_id: str,
    message: str,
) -> StaleTransferError:
    resolve(notification)
    await resolve_intent(db, company_id=actor.company_id, intent_id=intent_id)
    await commit_or_rollback(db)
    logger.warning("Stale transfer intent %s discarded", intent_id)
    return StaleTransferError(message=message)


async def _commit_transfer(
    db: AsyncSession,
    state: WeekState,
    actor: Actor,
    source: CellKey,
    recipient_id: int,
) -> CellKey:
    """Move ``source`` to ``recipient_id`` and write grid, quota and stats."""
    working = state.grid.copy()
    target = transfer_cell(
        working, source, recipient_id, max_weekly_shifts=get_settings().max_weekly_shifts
    )
    state.grid = working

    held = working.employee_selected_count(recipient_id)
    if state.employee_target(recipient_id) < held:
        state.quotas[recipient_id] = held

    await save_week_state(db, state)
    await snapshot_weekly_stats(
        db,
        company_id=state.company_id,
        grid=working,
        user_ids=[source.user_id, recipient_id],
    )
    await log_activity(
        db,
        company_id=state.company_id,
        actor_id=actor.user_id,
        action="shift_transferred",
        target_type="availability_cell",
        target_id=recipient_id,
        details={
            "week_key": state.week_key,
            "shift": source.shift.value,
            "day": source.day.value,
            "from_user_id": source.user_id,
            "to_user_id": recipient_id,
        },
    )
    logger.info(
        "Shift %s/%s in %s moved from user %s to user %s",
        source.day,
        source.shift,
        state.week_key,
        source.user_id,
        recipient_id,
    )
    return target


async def _commit_swap(
    db: AsyncSession,
    state: WeekState,
    actor: Actor,
    mine: CellKey,
    theirs: CellKey,
    names: dict[int, str],
) -> None:
    working = state.grid.copy()
    swap_cells(working, mine, theirs)
    state.grid = working

    await save_week_state(db, state)
    await snapshot_weekly_stats(
        db, company_id=state.company_id, grid=working, user_ids=[mine.user_id, theirs.user_id]
    )
    for user_id, new_shift, new_day in (
        (mine.user_id, theirs.shift, theirs.day),
        (theirs.user_id, mine.shift, mine.day),
    ):
        if user_id == actor.user_id:
            continue
        send_notification(
            db,
            company_id=state.company_id,
            user_id=user_id,
            message=(
                "The admin approved your shift swap. "
                f"You are now assigned to the {new_shift} shift on {new_day}."
            ),
            link=schedule_link(state.week_key),
        )
    await log_activity(
        db,
        company_id=state.company_id,
        actor_id=actor.user_id,
        action="shifts_swapped",
        target_type="availability_cell",
        target_id=mine.user_id,
        details={
            "week_key": state.week_key,
            "initiator": {"user_id": mine.user_id, "shift": mine.shift.value, "day": mine.day.value},
            "counterpart": {
                "user_id": theirs.user_id,
                "shift": theirs.shift.value,
                "day": theirs.day.value,
            },
        },
    )
    logger.info(
        "Swapped %s %s/%s with %s %s/%s in %s",
        names.get(mine.user_id, mine.user_id),
        mine.day,
        mine.shift,
        names.get(theirs.user_id, theirs.user_id),
        theirs.day,
        theirs.shift,
        state.week_key,
    )


async def _respond_to_offer(
    db: AsyncSession,
    actor: Actor,
    notification: Notification,
    intent: ShiftOfferIntent,
    accept: bool,
) -> IntentResponse:
    if not accept:
        resolve(notification)
        await commit_or_rollback(db)
        return IntentResponse(
            notification_id=notification.id, kind=intent.kind, accepted=False, message="Offer declined."
        )

    state = await load_week_state(db, actor.company_id, intent.week_key, lock=True)
    source = CellKey(intent.week_key, intent.from_user_id, intent.shift, intent.day)
    if not state.grid.is_selected(source):
        resolve(notification)
        await commit_or_rollback(db)
        raise StaleTransferError(message="This shift has already been taken by someone else.")

    if actor.is_admin:
        await _commit_transfer(db, state, actor, source, actor.user_id)
        resolve(notification)
        await commit_or_rollback(db)
        return IntentResponse(
            notification_id=notification.id,
            kind=intent.kind,
            accepted=True,
            committed=True,
            message="Shift was successfully reassigned to you.",
        )

    # Dry run so admins only receive requests that can still commit.
    transfer_cell(
        state.grid.copy(), source, actor.user_id, max_weekly_shifts=get_settings().max_weekly_shifts
    )

    users = await list_company_users(db, actor.company_id)
    names = _names(users)
    approval = TransferApprovalIntent(
        intent_id=uuid4().hex,
        week_key=intent.week_key,
        from_user_id=intent.from_user_id,
        to_user_id=actor.user_id,
        shift=intent.shift,
        day=intent.day,
    )
    for admin in (u for u in users if u.admin):
        send_notification(
            db,
            company_id=actor.company_id,
            user_id=admin.id,
            message=(
                f"{names.get(actor.user_id, 'An employee')} accepted the offer to take the "
                f"{intent.shift} shift on {intent.day}. Please approve the change."
            ),
            link=schedule_link(intent.week_key),
            meta=approval.model_dump(mode="json"),
        )
    resolve(notification)
    await log_activity(
        db,
        company_id=actor.company_id,
        actor_id=actor.user_id,
        action="shift_offer_accepted",
        target_type="availability_cell",
        target_id=intent.from_user_id,
        details=approval.model_dump(mode="json"),
        batch_id=intent.intent_id,
    )
    await commit_or_rollback(db)
    return IntentResponse(
        notification_id=notification.id,
        kind=intent.kind,
        accepted=True,
        pending_approval=True,
        message="Your request has been sent to the admin for approval.",
    )


async def _decide_transfer(
    db: AsyncSession,
    actor: Actor,
    notification: Notification,
    intent: TransferApprovalIntent,
    accept: bool,
) -> IntentResponse:
    users = await list_company_users(db, actor.company_id)
    names = _names(users)
    from_name = names.get(intent.from_user_id, "Unknown")
    to_name = names.get(intent.to_user_id, "an employee")
    link = schedule_link(intent.week_key)

    if not accept:
        send_notification(
            db,
            company_id=actor.company_id,
            user_id=intent.from_user_id,
            message=(
                f"Your shift offer to {to_name} for the {intent.shift} shift on "
                f"{intent.day} was declined by the admin."
            ),
            link=link,
        )
        send_notification(
            db,
            company_id=actor.company_id,
            user_id=intent.to_user_id,
            message=(
                f"Your request to take the {intent.shift} shift on {intent.day} "
                f"from {from_name} was declined by the admin."
            ),
            link=link,
        )
        resolve(notification)
        await resolve_intent(db, company_id=actor.company_id, intent_id=intent.intent_id)
        await commit_or_rollback(db)
        return IntentResponse(
            notification_id=notification.id, kind=intent.kind, accepted=False, message="Request declined."
        )

    state = await load_week_state(db, actor.company_id, intent.week_key, lock=True)
    source = CellKey(intent.week_key, intent.from_user_id, intent.shift, intent.day)
    if not state.grid.is_selected(source):
        raise await _discard_stale(
            db, actor, notification, intent.intent_id, "This shift has already been reassigned."
        )

    await _commit_transfer(db, state, actor, source, intent.to_user_id)
    if intent.from_user_id != actor.user_id:
        send_notification(
            db,
            company_id=actor.company_id,
            user_id=intent.from_user_id,
            message=(
                f"The admin approved your request to transfer the {intent.shift} shift on "
                f"{intent.day} to {to_name}."
            ),
            link=link,
        )
    if intent.to_user_id != actor.user_id:
        send_notification(
            db,
            company_id=actor.company_id,
            user_id=intent.to_user_id,
            message=(
                f"The admin approved your request to take the {intent.shift} shift on "
                f"{intent.day} from {from_name}."
            ),
            link=link,
        )
    resolve(notification)
    await resolve_intent(db, company_id=actor.company_id, intent_id=intent.intent_id)
    await commit_or_rollback(db)
    return IntentResponse(
        notification_id=notification.id,
        kind=intent.kind,
        accepted=True,
        committed=True,
        message="Shift transfer approved.",
    )


async def _decide_swap(
    db: AsyncSession,
    actor: Actor,
    notification: Notification,
    intent: SwapApprovalIntent,
    accept: bool,
) -> IntentResponse:
    if not accept:
        resolve(notification)
        await resolve_intent(db, company_id=actor.company_id, intent_id=intent.intent_id)
        await commit_or_rollback(db)
        return IntentResponse(
            notification_id=notification.id, kind=intent.kind, accepted=False, message="Swap declined."
        )

    state = await load_week_state(db, actor.company_id, intent.week_key, lock=True)
    mine = CellKey(intent.week_key, intent.initiator_id, intent.initiator_shift, intent.initiator_day)
    theirs = CellKey(
        intent.week_key, intent.counterpart_id, intent.counterpart_shift, intent.counterpart_day
    )
    if not (state.grid.is_selected(mine) and state.grid.is_selected(theirs)):
        raise await _discard_stale(
            db, actor, notification, intent.intent_id, "One of the shifts has already changed."
        )

    users = await list_company_users(db, actor.company_id)
    await _commit_swap(db, state, actor, mine, theirs, _names(users))
    resolve(notification)
    await resolve_intent(db, company_id=actor.company_id, intent_id=intent.intent_id)
    await commit_or_rollback(db)
    return IntentResponse(
        notification_id=notification.id,
        kind=intent.kind,
        accepted=True,
        committed=True,
        message="Swap approved and shifts updated.",
    )

from types import SimpleNamespace

import pytest

from app.models.activity_log import ActivityLog
from app.models.availability import CellStatus
from app.models.notification import Notification
from app.schemas.transfer import OfferRequest, ShiftOfferIntent, SwapRequest
from app.services import transfer_service
from app.services.schedule_errors import (
    ScheduleAuthorizationError,
    ScheduleValidationError,
    StaleTransferError,
)
from tests.utils.factories import (
    E,
    FRI,
    M,
    MON,
    NI,
    THU,
    TUE,
    WED,
    WEEK,
    added,
    make_actor,
    make_db,
    make_grid,
    make_state,
    make_user,
    status_of,
)

ALICE, BOB, CAROL, ADMIN = 1, 2, 3, 9
USERS = [
    make_user(ALICE, full_name="Alice"),
    make_user(BOB, full_name="Bob"),
    make_user(CAROL, full_name="Carol"),
    make_user(ADMIN, admin=True, full_name="Admin"),
]


@pytest.fixture
def env(mocker):
    """Patch the store, directory and notification lookups of the transfer service."""
    ns = SimpleNamespace()
    mocker.patch(
        "app.services.transfer_service.get_settings",
        return_value=SimpleNamespace(max_weekly_shifts=6),
    )
    ns.load = mocker.patch(
        "app.services.transfer_service.load_week_state", new_callable=mocker.AsyncMock
    )
    ns.save = mocker.patch(
        "app.services.transfer_service.save_week_state", new_callable=mocker.AsyncMock
    )
    ns.commit = mocker.patch(
        "app.services.transfer_service.commit_or_rollback", new_callable=mocker.AsyncMock
    )
    ns.users = mocker.patch(
        "app.services.transfer_service.list_company_users",
        new_callable=mocker.AsyncMock,
        return_value=USERS,
    )
    ns.snapshot = mocker.patch(
        "app.services.transfer_service.snapshot_weekly_stats",
        new_callable=mocker.AsyncMock,
        return_value=2,
    )
    ns.notification = mocker.patch(
        "app.services.transfer_service.get_own_notification", new_callable=mocker.AsyncMock
    )
    ns.resolve_intent = mocker.patch(
        "app.services.transfer_service.resolve_intent",
        new_callable=mocker.AsyncMock,
        return_value=1,
    )

    def use_state(state):
        ns.load.return_value = state
        return state

    ns.use_state = use_state
    return ns


def _inbox(db, user_id):
    return [n for n in added(db, Notification) if n.user_id == user_id]


def _as_received(notification: Notification, notification_id: int) -> Notification:
    notification.id = notification_id
    return notification


@pytest.mark.asyncio
async def test_offer_goes_to_eligible_colleagues_only(env):
    env.use_state(
        make_state(make_grid(selected=[(ALICE, E, FRI), (CAROL, M, FRI)]))
    )
    db = make_db()

    result = await transfer_service.offer_shift(
        db, actor=make_actor(ALICE), week_key=WEEK, payload=OfferRequest(shift=E, day=FRI)
    )

    # Carol already works on Friday
    assert result.recipients == [BOB, ADMIN]
    bob_inbox = _inbox(db, BOB)
    assert len(bob_inbox) == 1
    assert bob_inbox[0].message == (
        "You are offered to take Evening shift on Friday "
        "(Week: 03/08/2025 - 09/08/2025) from Alice."
    )
    assert bob_inbox[0].meta["kind"] == "shift_offer"
    assert _inbox(db, CAROL) == []
    env.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_explicit_recipient_bypasses_eligibility_scan(env):
    env.use_state(
        make_state(make_grid(selected=[(ALICE, E, FRI), (CAROL, M, FRI)]))
    )
    db = make_db()

    result = await transfer_service.offer_shift(
        db,
        actor=make_actor(ALICE),
        week_key=WEEK,
        payload=OfferRequest(shift=E, day=FRI, to_user_id=CAROL),
    )

    assert result.recipients == [CAROL]
    assert _inbox(db, CAROL)[0].meta["explicit"] is True


@pytest.mark.asyncio
async def test_offer_of_unassigned_shift_refused(env):
    env.use_state(make_state(make_grid(available=[(ALICE, E, FRI)])))
    with pytest.raises(ScheduleValidationError) as err:
        await transfer_service.offer_shift(
            make_db(), actor=make_actor(ALICE), week_key=WEEK, payload=OfferRequest(shift=E, day=FRI)
        )
    assert err.value.reason == "not_assigned"


@pytest.mark.asyncio
async def test_employee_cannot_offer_for_someone_else(env):
    env.use_state(make_state(make_grid(selected=[(BOB, E, FRI)])))
    with pytest.raises(ScheduleAuthorizationError):
        await transfer_service.offer_shift(
            make_db(),
            actor=make_actor(ALICE),
            week_key=WEEK,
            payload=OfferRequest(shift=E, day=FRI, from_user_id=BOB),
        )


@pytest.mark.asyncio
async def test_offer_accepted_by_employee_needs_admin_approval(env):
    """Offer -> employee accepts -> admin approves -> the cell moves."""
    state = env.use_state(
        make_state(make_grid(available=[(BOB, E, FRI)], selected=[(ALICE, E, FRI)]))
    )

    # Alice offers Friday Evening to Bob
    db = make_db()
    await transfer_service.offer_shift(
        db,
        actor=make_actor(ALICE),
        week_key=WEEK,
        payload=OfferRequest(shift=E, day=FRI, to_user_id=BOB),
    )
    offer = _as_received(_inbox(db, BOB)[0], 10)

    # Bob accepts: nothing moves yet, every admin gets an approval request
    env.notification.return_value = offer
    db = make_db()
    response = await transfer_service.respond_to_intent(
        db, actor=make_actor(BOB), notification_id=10, accept=True
    )

    assert response.pending_approval is True
    assert response.committed is False
    assert response.message == "Your request has been sent to the admin for approval."
    assert offer.resolved_at is not None
    assert state.grid.is_selected(state.grid.key(ALICE, E, FRI))
    env.save.assert_not_awaited()
    approvals = _inbox(db, ADMIN)
    assert len(approvals) == 1
    assert approvals[0].meta["kind"] == "transfer_approval"
    approval = _as_received(approvals[0], 11)

    # Admin approves: the cell moves and both parties are told
    env.notification.return_value = approval
    db = make_db()
    response = await transfer_service.respond_to_intent(
        db, actor=make_actor(ADMIN, admin=True), notification_id=11, accept=True
    )

    assert response.committed is True
    assert response.message == "Shift transfer approved."
    assert status_of(state.grid, ALICE, E, FRI) == CellStatus.DEFAULT
    assert status_of(state.grid, BOB, E, FRI) == CellStatus.SELECTED
    assert status_of(state.grid, BOB, NI, FRI) is None
    assert state.quotas[BOB] == 1
    env.snapshot.assert_awaited_once()
    assert sorted(env.snapshot.await_args.kwargs["user_ids"]) == [ALICE, BOB]
    assert [n.message for n in _inbox(db, ALICE)] == [
        "The admin approved your request to transfer the Evening shift on Friday to Bob."
    ]
    assert [n.message for n in _inbox(db, BOB)] == [
        "The admin approved your request to take the Evening shift on Friday from Alice."
    ]
    env.resolve_intent.assert_awaited_once()
    assert any(log.action == "shift_transferred" for log in added(db, ActivityLog))

    # Replaying the consumed approval is reported as stale and moves nothing
    env.save.reset_mock()
    with pytest.raises(StaleTransferError):
        await transfer_service.respond_to_intent(
            make_db(), actor=make_actor(ADMIN, admin=True), notification_id=11, accept=True
        )
    env.save.assert_not_awaited()
    assert status_of(state.grid, BOB, E, FRI) == CellStatus.SELECTED


@pytest.mark.asyncio
async def test_admin_accepting_offer_takes_shift_immediately(env):
    state = env.use_state(make_state(make_grid(selected=[(ALICE, E, FRI)])))
    intent = ShiftOfferIntent(
        intent_id="abc", week_key=WEEK, from_user_id=ALICE, shift=E, day=FRI
    )
    env.notification.return_value = Notification(
        id=20, company_id=1, user_id=ADMIN, message="", link="", meta=intent.model_dump(mode="json")
    )

    response = await transfer_service.respond_to_intent(
        make_db(), actor=make_actor(ADMIN, admin=True), notification_id=20, accept=True
    )

    assert response.committed is True
    assert response.message == "Shift was successfully reassigned to you."
    assert status_of(state.grid, ADMIN, E, FRI) == CellStatus.SELECTED


@pytest.mark.asyncio
async def test_accepting_offer_for_taken_shift_is_stale(env):
    env.use_state(make_state(make_grid(selected=[(CAROL, E, FRI)], available=[(ALICE, E, FRI)])))
    intent = ShiftOfferIntent(
        intent_id="abc", week_key=WEEK, from_user_id=ALICE, shift=E, day=FRI
    )
    notification = Notification(
        id=21, company_id=1, user_id=BOB, message="", link="", meta=intent.model_dump(mode="json")
    )
    env.notification.return_value = notification

    with pytest.raises(StaleTransferError) as err:
        await transfer_service.respond_to_intent(
            make_db(), actor=make_actor(BOB), notification_id=21, accept=True
        )
    assert err.value.message == "This shift has already been taken by someone else."
    assert notification.resolved_at is not None


@pytest.mark.asyncio
async def test_accepting_offer_that_breaks_rest_rule_is_refused(env):
    env.use_state(make_state(make_grid(selected=[(ALICE, M, FRI), (BOB, NI, THU)])))
    intent = ShiftOfferIntent(
        intent_id="abc", week_key=WEEK, from_user_id=ALICE, shift=M, day=FRI, explicit=True
    )
    env.notification.return_value = Notification(
        id=22, company_id=1, user_id=BOB, message="", link="", meta=intent.model_dump(mode="json")
    )
    db = make_db()

    with pytest.raises(ScheduleValidationError) as err:
        await transfer_service.respond_to_intent(
            db, actor=make_actor(BOB), notification_id=22, accept=True
        )
    assert err.value.reason == "adjacency_conflict"
    assert _inbox(db, ADMIN) == []


@pytest.mark.asyncio
async def test_declining_offer_resolves_it(env):
    intent = ShiftOfferIntent(
        intent_id="abc", week_key=WEEK, from_user_id=ALICE, shift=E, day=FRI
    )
    notification = Notification(
        id=23, company_id=1, user_id=BOB, message="", link="", meta=intent.model_dump(mode="json")
    )
    env.notification.return_value = notification

    response = await transfer_service.respond_to_intent(
        make_db(), actor=make_actor(BOB), notification_id=23, accept=False
    )
    assert response.accepted is False
    assert notification.resolved_at is not None
    env.load.assert_not_awaited()


@pytest.mark.asyncio
async def test_plain_notification_is_not_actionable(env):
    env.notification.return_value = Notification(
        id=24, company_id=1, user_id=BOB, message="hi", link="", meta=None
    )
    with pytest.raises(ScheduleValidationError) as err:
        await transfer_service.respond_to_intent(
            make_db(), actor=make_actor(BOB), notification_id=24, accept=True
        )
    assert err.value.reason == "not_actionable"


@pytest.mark.asyncio
async def test_swap_with_counterpart_busy_on_my_day_is_rejected(env):
    env.use_state(
        make_state(make_grid(selected=[(ALICE, M, MON), (BOB, E, TUE), (BOB, E, MON)]))
    )
    db = make_db()

    with pytest.raises(ScheduleValidationError) as err:
        await transfer_service.propose_swap(
            db,
            actor=make_actor(ALICE),
            week_key=WEEK,
            payload=SwapRequest(shift=M, day=MON, their_user_id=BOB, their_shift=E, their_day=TUE),
        )

    assert err.value.reason == "swap_conflict"
    assert "counterpart_assigned_on_my_day" in err.value.conflicts
    assert added(db, Notification) == []
    env.users.assert_not_awaited()
    env.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_employee_swap_waits_for_admin_then_commits(env):
    state = env.use_state(
        make_state(
            make_grid(
                available=[(ALICE, E, WED), (BOB, M, MON)],
                selected=[(ALICE, M, MON), (BOB, E, WED)],
            )
        )
    )
    db = make_db()

    result = await transfer_service.propose_swap(
        db,
        actor=make_actor(ALICE),
        week_key=WEEK,
        payload=SwapRequest(shift=M, day=MON, their_user_id=BOB, their_shift=E, their_day=WED),
    )

    assert result.pending_approval is True
    request = _inbox(db, ADMIN)
    assert len(request) == 1
    assert request[0].message == (
        "Alice requested to swap their Morning shift on Monday with Bob's Evening shift on Wednesday."
    )
    env.save.assert_not_awaited()

    env.notification.return_value = _as_received(request[0], 30)
    db = make_db()
    response = await transfer_service.respond_to_intent(
        db, actor=make_actor(ADMIN, admin=True), notification_id=30, accept=True
    )

    assert response.committed is True
    assert response.message == "Swap approved and shifts updated."
    assert status_of(state.grid, ALICE, E, WED) == CellStatus.SELECTED
    assert status_of(state.grid, BOB, M, MON) == CellStatus.SELECTED
    assert status_of(state.grid, ALICE, M, MON) == CellStatus.DEFAULT
    assert [n.message for n in _inbox(db, ALICE)] == [
        "The admin approved your shift swap. You are now assigned to the Evening shift on Wednesday."
    ]
    assert len(_inbox(db, BOB)) == 1


@pytest.mark.asyncio
async def test_swap_approval_after_change_is_stale(env):
    state = env.use_state(
        make_state(make_grid(selected=[(ALICE, M, MON), (BOB, E, WED)]))
    )
    db = make_db()
    await transfer_service.propose_swap(
        db,
        actor=make_actor(ALICE),
        week_key=WEEK,
        payload=SwapRequest(shift=M, day=MON, their_user_id=BOB, their_shift=E, their_day=WED),
    )
    request = _as_received(_inbox(db, ADMIN)[0], 31)

    # Bob's shift moves on before the admin answers
    state.grid.set_status(state.grid.key(BOB, E, WED), CellStatus.DEFAULT)
    env.notification.return_value = request

    with pytest.raises(StaleTransferError) as err:
        await transfer_service.respond_to_intent(
            make_db(), actor=make_actor(ADMIN, admin=True), notification_id=31, accept=True
        )
    assert err.value.message == "One of the shifts has already changed."
    assert request.resolved_at is not None
    env.resolve_intent.assert_awaited_once()


@pytest.mark.asyncio
async def test_admin_swap_commits_directly(env):
    state = env.use_state(
        make_state(make_grid(selected=[(ALICE, M, MON), (BOB, E, WED)]))
    )
    db = make_db()

    result = await transfer_service.propose_swap(
        db,
        actor=make_actor(ADMIN, admin=True),
        week_key=WEEK,
        payload=SwapRequest(
            shift=M,
            day=MON,
            from_user_id=ALICE,
            their_user_id=BOB,
            their_shift=E,
            their_day=WED,
        ),
    )

    assert result.committed is True
    assert status_of(state.grid, ALICE, E, WED) == CellStatus.SELECTED
    assert status_of(state.grid, BOB, M, MON) == CellStatus.SELECTED
    assert len(_inbox(db, ALICE)) == 1
    assert len(_inbox(db, BOB)) == 1


@pytest.mark.asyncio
async def test_employee_cannot_answer_approval_request(env):
    env.use_state(make_state(make_grid(selected=[(ALICE, M, MON), (BOB, E, WED)])))
    db = make_db()
    await transfer_service.propose_swap(
        db,
        actor=make_actor(ALICE),
        week_key=WEEK,
        payload=SwapRequest(shift=M, day=MON, their_user_id=BOB, their_shift=E, their_day=WED),
    )
    request = _as_received(_inbox(db, ADMIN)[0], 32)
    request.user_id = BOB
    env.notification.return_value = request

    with pytest.raises(ScheduleAuthorizationError):
        await transfer_service.respond_to_intent(
            make_db(), actor=make_actor(BOB), notification_id=32, accept=True
        )

from datetime import date
from types import SimpleNamespace

import pytest

from app.models.activity_log import ActivityLog
from app.models.availability import CellStatus
from app.schemas.schedule import (
    EditStatusUpdate,
    ShiftQuotasUpdate,
    StaffingTargetsUpdate,
    ToggleRequest,
)
from app.services import schedule_service
from app.services.schedule_errors import (
    ScheduleAuthorizationError,
    ScheduleValidationError,
)
from tests.utils.factories import (
    E,
    M,
    MON,
    N,
    NI,
    SUN,
    WEEK,
    added,
    full_week,
    make_actor,
    make_db,
    make_grid,
    make_state,
    make_user,
    status_of,
)


@pytest.fixture
def store(mocker):
    """Patch the availability store functions used by the schedule service."""

    def _install(state, users=()):
        mocker.patch(
            "app.services.schedule_service.load_week_state",
            new_callable=mocker.AsyncMock,
            return_value=state,
        )
        save = mocker.patch(
            "app.services.schedule_service.save_week_state", new_callable=mocker.AsyncMock
        )
        commit = mocker.patch(
            "app.services.schedule_service.commit_or_rollback", new_callable=mocker.AsyncMock
        )
        mocker.patch(
            "app.services.schedule_service.list_company_users",
            new_callable=mocker.AsyncMock,
            return_value=list(users),
        )
        return SimpleNamespace(save=save, commit=commit)

    return _install


def test_get_week_info():
    info = schedule_service.get_week_info(1, date(2025, 7, 30))
    assert info.week_key == WEEK
    assert info.label == "03/08/2025 - 09/08/2025"
    assert info.dates[0] == (SUN, date(2025, 8, 3))


@pytest.mark.asyncio
async def test_toggle_selects_and_persists_cascade(store):
    state = make_state(
        make_grid(available=full_week(1)), staffing={(SUN, NI): 1}, quotas={1: 5}
    )
    calls = store(state)
    db = make_db()

    result = await schedule_service.toggle_cell(
        db,
        actor=make_actor(99, admin=True),
        week_key=WEEK,
        payload=ToggleRequest(user_id=1, shift=NI, day=SUN),
    )

    assert result.status == CellStatus.SELECTED
    assert result.changed is True
    assert result.slot_selected == 1
    assert result.employee_selected == 1
    assert {(c.shift, c.day) for c in result.cascade} >= {(M, MON), (N, MON)}
    calls.save.assert_awaited_once()
    calls.commit.assert_awaited_once()
    log = added(db, ActivityLog)
    assert log and log[0].action == "shift_toggled"


@pytest.mark.asyncio
async def test_toggle_refusal_writes_nothing(store):
    state = make_state(make_grid(available=full_week(1)), staffing={}, quotas={1: 5})
    calls = store(state)
    db = make_db()

    with pytest.raises(ScheduleValidationError) as err:
        await schedule_service.toggle_cell(
            db,
            actor=make_actor(99, admin=True),
            week_key=WEEK,
            payload=ToggleRequest(user_id=1, shift=M, day=SUN),
        )

    # No staffing target defined for the slot means nobody can be selected
    assert err.value.reason == "slot_full"
    calls.save.assert_not_awaited()
    calls.commit.assert_not_awaited()
    assert status_of(state.grid, 1, M, SUN) == CellStatus.DEFAULT


@pytest.mark.asyncio
async def test_toggle_on_disabled_cell_is_noop_without_write(store):
    state = make_state(
        make_grid(available=full_week(1), selected=[(1, M, SUN)]),
        staffing={(SUN, E): 1},
        quotas={1: 5},
    )
    calls = store(state)

    result = await schedule_service.toggle_cell(
        make_db(),
        actor=make_actor(99, admin=True),
        week_key=WEEK,
        payload=ToggleRequest(user_id=1, shift=E, day=SUN),
    )

    assert result.changed is False
    assert result.status == CellStatus.DISABLED
    calls.save.assert_not_awaited()


@pytest.mark.asyncio
async def test_toggle_requires_admin(store):
    store(make_state(make_grid()))
    with pytest.raises(ScheduleAuthorizationError):
        await schedule_service.toggle_cell(
            make_db(),
            actor=make_actor(1),
            week_key=WEEK,
            payload=ToggleRequest(user_id=1, shift=M, day=SUN),
        )


@pytest.mark.asyncio
async def test_staffing_target_cannot_drop_below_selected(store):
    state = make_state(
        make_grid(selected=[(1, NI, SUN)]), staffing={(SUN, NI): 1}, quotas={1: 5}
    )
    calls = store(state)

    with pytest.raises(ScheduleValidationError) as err:
        await schedule_service.update_staffing_targets(
            make_db(),
            actor=make_actor(99, admin=True),
            week_key=WEEK,
            payload=StaffingTargetsUpdate(targets={SUN: {NI: 0}}),
        )

    assert err.value.reason == "below_selected"
    assert state.staffing[(SUN, NI)] == 1
    calls.save.assert_not_awaited()


@pytest.mark.asyncio
async def test_staffing_targets_update(store):
    state = make_state(make_grid(selected=[(1, NI, SUN)]), staffing={(SUN, NI): 1})
    calls = store(state)

    out = await schedule_service.update_staffing_targets(
        make_db(),
        actor=make_actor(99, admin=True),
        week_key=WEEK,
        payload=StaffingTargetsUpdate(targets={SUN: {NI: 2, M: 3}}),
    )

    assert out.targets[SUN] == {NI: 2, M: 3}
    assert state.slot_target(SUN, M) == 3
    calls.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_negative_staffing_target_refused(store):
    store(make_state(make_grid()))
    with pytest.raises(ScheduleValidationError) as err:
        await schedule_service.update_staffing_targets(
            make_db(),
            actor=make_actor(99, admin=True),
            week_key=WEEK,
            payload=StaffingTargetsUpdate(targets={SUN: {M: -1}}),
        )
    assert err.value.reason == "out_of_range"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "value,reason",
    [(-1, "out_of_range"), (99, "out_of_range"), (0, "below_selected")],
)
async def test_shift_quota_bounds(store, mocker, value, reason):
    mocker.patch(
        "app.services.schedule_service.get_settings",
        return_value=SimpleNamespace(max_weekly_shifts=6),
    )
    state = make_state(make_grid(selected=[(1, M, SUN)]), quotas={1: 3})
    store(state, users=[make_user(1)])

    with pytest.raises(ScheduleValidationError) as err:
        await schedule_service.update_shift_quotas(
            make_db(),
            actor=make_actor(99, admin=True),
            week_key=WEEK,
            payload=ShiftQuotasUpdate(quotas={1: value}),
        )
    assert err.value.reason == reason
    assert state.quotas == {1: 3}


@pytest.mark.asyncio
async def test_shift_quota_for_unknown_employee_refused(store):
    store(make_state(make_grid()), users=[make_user(1)])
    with pytest.raises(ScheduleValidationError) as err:
        await schedule_service.update_shift_quotas(
            make_db(),
            actor=make_actor(99, admin=True),
            week_key=WEEK,
            payload=ShiftQuotasUpdate(quotas={42: 1}),
        )
    assert err.value.reason == "unknown_employee"


@pytest.mark.asyncio
async def test_shift_quota_update(store, mocker):
    mocker.patch(
        "app.services.schedule_service.get_settings",
        return_value=SimpleNamespace(max_weekly_shifts=6),
    )
    state = make_state(make_grid(selected=[(1, M, SUN)]), quotas={1: 1})
    store(state, users=[make_user(1), make_user(2)])

    out = await schedule_service.update_shift_quotas(
        make_db(),
        actor=make_actor(99, admin=True),
        week_key=WEEK,
        payload=ShiftQuotasUpdate(quotas={1: 4, 2: 6}),
    )
    assert out.quotas == {1: 4, 2: 6}


@pytest.mark.asyncio
async def test_set_edit_status(store):
    state = make_state(make_grid(), edit_allowed=False)
    calls = store(state)
    out = await schedule_service.set_edit_status(
        make_db(),
        actor=make_actor(99, admin=True),
        week_key=WEEK,
        payload=EditStatusUpdate(edit_allowed=True),
    )
    assert out.edit_allowed is True
    assert state.edit_allowed is True
    calls.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_overview_marks_most_critical_slot(store):
    state = make_state(
        make_grid(available=[(1, M, SUN), (2, M, SUN), (1, N, MON)]),
        staffing={(SUN, M): 1, (MON, N): 1},
        quotas={1: 2, 2: 1},
    )
    store(state, users=[make_user(1), make_user(2)])

    board = await schedule_service.get_schedule_overview(
        make_db(), actor=make_actor(99, admin=True), week_key=WEEK
    )

    slots = {(s.day, s.shift): s for s in board.slots}
    assert slots[(MON, N)].most_critical is True
    assert slots[(SUN, M)].most_critical is False
    assert slots[(SUN, M)].criticality == pytest.approx(1 / 9)
    assert slots[(MON, E)].target is None
    assert board.totals.required_shifts == 2
    assert board.totals.weekly_targets == 3
    assert board.fully_staffed is False
    assert len(board.employees) == 2


@pytest.mark.asyncio
async def test_employee_sees_empty_board_until_published(store):
    state = make_state(make_grid(selected=[(1, M, SUN)]), staffing={(SUN, M): 1})
    store(state, users=[make_user(1)])

    board = await schedule_service.get_schedule_overview(
        make_db(), actor=make_actor(1), week_key=WEEK
    )
    assert board.published is False
    assert board.employees == []

    state.published = True
    board = await schedule_service.get_schedule_overview(
        make_db(), actor=make_actor(1), week_key=WEEK
    )
    assert board.published is True
    assert board.fully_staffed is True
    assert board.employees[0].selected_count == 1

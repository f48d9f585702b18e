import pytest

from app.models.availability import CellStatus, DayOfWeek, ShiftKind
from app.services.assignment_machine import (
    release_cell,
    select_cell,
    swap_cells,
    toggle,
    transfer_cell,
)
from app.services.schedule_errors import ScheduleValidationError, StaleTransferError
from app.services.schedule_grid import CellKey, ScheduleGrid
from tests.utils.factories import (
    E,
    FRI,
    M,
    MON,
    N,
    NEXT_WEEK,
    NI,
    PREV_WEEK,
    SAT,
    SUN,
    THU,
    TUE,
    WED,
    WEEK,
    cell,
    full_week,
    make_grid,
    status_of,
)


def _selected_per_day(grid, user_id):
    per_day: dict[DayOfWeek, int] = {}
    for key, c in grid:
        if key.user_id == user_id and key.week_key == grid.week_key and c.status == CellStatus.SELECTED:
            per_day[key.day] = per_day.get(key.day, 0) + 1
    return per_day


def test_sunday_night_selection_disables_monday_morning_and_noon():
    grid = make_grid(available=full_week(1))
    key = CellKey(WEEK, 1, NI, SUN)

    outcome = toggle(grid, key, slot_target=1, employee_target=5)

    assert outcome.changed and outcome.status == CellStatus.SELECTED
    assert status_of(grid, 1, M, MON) == CellStatus.DISABLED
    assert status_of(grid, 1, N, MON) == CellStatus.DISABLED
    assert status_of(grid, 1, E, MON) == CellStatus.DEFAULT
    assert grid.slot_selected_count(NI, SUN) == 1
    cascaded = {(c.key.shift, c.key.day) for c in outcome.cascade}
    assert cascaded == {(M, SUN), (N, SUN), (E, SUN), (M, MON), (N, MON)}


def test_select_then_release_restores_grid_exactly():
    grid = make_grid(available=full_week(1), selected=[(1, E, TUE)])
    before = grid.snapshot()

    key = CellKey(WEEK, 1, NI, WED)
    toggle(grid, key, slot_target=2, employee_target=5)
    assert grid.snapshot() != before
    toggle(grid, key, slot_target=2, employee_target=5)

    assert grid.snapshot() == before


def test_release_keeps_cells_disabled_by_other_selection():
    # Tuesday Morning and Noon are forced by Monday Night and by Tuesday Evening.
    grid = make_grid(available=full_week(1), selected=[(1, NI, MON), (1, E, TUE)])
    assert status_of(grid, 1, N, TUE) == CellStatus.DISABLED

    release_cell(grid, CellKey(WEEK, 1, NI, MON))

    assert status_of(grid, 1, N, TUE) == CellStatus.DISABLED
    assert status_of(grid, 1, M, TUE) == CellStatus.DISABLED
    assert status_of(grid, 1, E, MON) == CellStatus.DEFAULT


def test_disabled_cell_toggle_is_a_noop():
    grid = make_grid(available=full_week(1), selected=[(1, M, SUN)])
    before = grid.snapshot()

    outcome = toggle(grid, CellKey(WEEK, 1, E, SUN), slot_target=3, employee_target=5)

    assert outcome.changed is False
    assert outcome.status == CellStatus.DISABLED
    assert grid.snapshot() == before


@pytest.mark.parametrize(
    "slot_target,employee_target,reason",
    [(0, 5, "slot_full"), (1, 0, "quota_reached")],
)
def test_toggle_refusals_leave_grid_untouched(slot_target, employee_target, reason):
    grid = make_grid(available=full_week(1))
    before = grid.snapshot()

    with pytest.raises(ScheduleValidationError) as err:
        toggle(grid, CellKey(WEEK, 1, M, MON), slot_target=slot_target, employee_target=employee_target)

    assert err.value.reason == reason
    assert grid.snapshot() == before
    assert grid.changes() == {}


def test_toggle_unavailable_cell_refused():
    grid = make_grid(unavailable=[(1, M, MON)])
    with pytest.raises(ScheduleValidationError) as err:
        toggle(grid, CellKey(WEEK, 1, M, MON), slot_target=1, employee_target=1)
    assert err.value.reason == "not_available"

    with pytest.raises(ScheduleValidationError):
        toggle(grid, CellKey(WEEK, 1, M, TUE), slot_target=1, employee_target=1)


def test_toggle_refuses_morning_after_neighbour_week_night():
    # Previous week's Saturday Night blocks this week's Sunday Morning even
    # when the Sunday cell was declared after that selection.
    grid = ScheduleGrid(
        WEEK,
        {
            CellKey(PREV_WEEK, 1, NI, SAT): cell(status=CellStatus.SELECTED),
            CellKey(WEEK, 1, M, SUN): cell(),
        },
    )
    with pytest.raises(ScheduleValidationError) as err:
        toggle(grid, CellKey(WEEK, 1, M, SUN), slot_target=1, employee_target=1)
    assert err.value.reason == "adjacency_conflict"


def test_saturday_night_disables_next_week_sunday():
    grid = make_grid(
        available=full_week(1) + [(1, M, SUN, NEXT_WEEK), (1, N, SUN, NEXT_WEEK)]
    )
    toggle(grid, CellKey(WEEK, 1, NI, SAT), slot_target=1, employee_target=5)

    assert status_of(grid, 1, M, SUN, NEXT_WEEK) == CellStatus.DISABLED
    assert status_of(grid, 1, N, SUN, NEXT_WEEK) == CellStatus.DISABLED
    # Neighbour-week cells never count towards this week's load
    assert grid.employee_selected_count(1) == 1

    toggle(grid, CellKey(WEEK, 1, NI, SAT), slot_target=1, employee_target=5)
    assert status_of(grid, 1, M, SUN, NEXT_WEEK) == CellStatus.DEFAULT


def test_exclusivity_and_adjacency_hold_after_many_toggles():
    grid = make_grid(available=full_week(1) + full_week(2))
    attempts = [
        (1, NI, SUN), (1, M, MON), (1, E, MON), (1, N, TUE), (1, NI, TUE),
        (2, M, WED), (2, NI, TUE), (2, E, WED), (1, NI, SUN), (1, M, MON),
    ]
    for user_id, shift, day in attempts:
        try:
            toggle(grid, CellKey(WEEK, user_id, shift, day), slot_target=2, employee_target=7)
        except ScheduleValidationError:
            pass

    for user_id in (1, 2):
        assert all(count <= 1 for count in _selected_per_day(grid, user_id).values())
        for day_index, day in enumerate(DayOfWeek):
            if day_index == 6:
                continue
            nxt = list(DayOfWeek)[day_index + 1]
            if grid.is_selected(CellKey(WEEK, user_id, NI, day)):
                assert not grid.is_selected(CellKey(WEEK, user_id, M, nxt))
                assert not grid.is_selected(CellKey(WEEK, user_id, N, nxt))


def test_transfer_moves_cell_and_cascades():
    grid = make_grid(available=full_week(2), selected=[(1, E, FRI)])

    target = transfer_cell(grid, CellKey(WEEK, 1, E, FRI), 2, max_weekly_shifts=6)

    assert target == CellKey(WEEK, 2, E, FRI)
    assert status_of(grid, 1, E, FRI) == CellStatus.DEFAULT
    assert status_of(grid, 2, E, FRI) == CellStatus.SELECTED
    assert status_of(grid, 2, NI, FRI) == CellStatus.DISABLED
    assert grid.slot_selected_count(E, FRI) == 1


def test_transfer_creates_missing_recipient_cell():
    grid = make_grid(selected=[(1, E, FRI)])
    target = transfer_cell(grid, CellKey(WEEK, 1, E, FRI), 2, max_weekly_shifts=6)
    assert grid.get(target).is_available
    assert target in grid.created_keys()


def test_transfer_of_released_cell_is_stale():
    grid = make_grid(available=[(1, E, FRI)])
    with pytest.raises(StaleTransferError):
        transfer_cell(grid, CellKey(WEEK, 1, E, FRI), 2, max_weekly_shifts=6)


def test_transfer_refusals():
    grid = make_grid(selected=[(1, E, FRI), (2, NI, THU), (3, M, MON)])
    source = CellKey(WEEK, 1, E, FRI)
    with pytest.raises(ScheduleValidationError) as err:
        transfer_cell(grid, source, 1, max_weekly_shifts=6)
    assert err.value.reason == "same_employee"
    with pytest.raises(ScheduleValidationError) as err:
        transfer_cell(grid, source, 3, max_weekly_shifts=1)
    assert err.value.reason == "quota_reached"

    morning = make_grid(selected=[(1, M, FRI), (2, NI, THU)])
    with pytest.raises(ScheduleValidationError) as err:
        transfer_cell(morning.copy(), CellKey(WEEK, 1, M, FRI), 2, max_weekly_shifts=6)
    assert err.value.reason == "adjacency_conflict"


def test_swap_exchanges_cells():
    grid = make_grid(available=full_week(1) + full_week(2), selected=[(1, M, MON), (2, E, WED)])

    mine, theirs = swap_cells(grid, CellKey(WEEK, 1, M, MON), CellKey(WEEK, 2, E, WED))

    assert mine == CellKey(WEEK, 1, E, WED)
    assert theirs == CellKey(WEEK, 2, M, MON)
    assert grid.is_selected(mine) and grid.is_selected(theirs)
    assert status_of(grid, 1, M, MON) == CellStatus.DEFAULT
    assert status_of(grid, 1, N, MON) == CellStatus.DEFAULT
    assert status_of(grid, 2, E, WED) == CellStatus.DEFAULT
    assert status_of(grid, 1, NI, WED) == CellStatus.DISABLED


def test_swap_conflict_carries_condition_names():
    grid = make_grid(selected=[(1, M, MON), (2, M, TUE), (2, E, MON)])
    with pytest.raises(ScheduleValidationError) as err:
        swap_cells(grid, CellKey(WEEK, 1, M, MON), CellKey(WEEK, 2, M, TUE))
    assert err.value.reason == "swap_conflict"
    assert err.value.conflicts == ["counterpart_assigned_on_my_day"]


def test_swap_of_changed_cell_is_stale():
    grid = make_grid(selected=[(1, M, MON)], available=[(2, E, WED)])
    with pytest.raises(StaleTransferError):
        swap_cells(grid, CellKey(WEEK, 1, M, MON), CellKey(WEEK, 2, E, WED))


def test_select_cell_only_disables_existing_default_cells():
    grid = make_grid(available=[(1, M, TUE), (1, N, TUE)])
    changes = select_cell(grid, CellKey(WEEK, 1, M, TUE))
    assert [c.key.shift for c in changes] == [ShiftKind.MORNING, ShiftKind.NOON]
    assert CellKey(WEEK, 1, E, TUE) not in grid

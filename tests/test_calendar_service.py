from datetime import date

from services.calendar_service import CalendarService
from services.sync_service import SyncCoordinator
from tests.test_sync_service import FailingRemoteStore
from utils.datetime_utils import start_of_week, week_starts_between, format_week_label

def test_start_of_week_is_monday():
    assert start_of_week(date(2024, 3, 15)) == date(2024, 3, 11)
    assert start_of_week(date(2024, 3, 17)) == date(2024, 3, 11)
    assert start_of_week(date(2024, 3, 11)) == date(2024, 3, 11)

def test_week_starts_go_back_to_earliest_week():
    weeks = week_starts_between(date(2024, 2, 28), date(2024, 3, 15))
    assert weeks == [date(2024, 3, 11), date(2024, 3, 4), date(2024, 2, 26)]

def test_week_labels():
    today = date(2024, 3, 15)
    assert format_week_label(date(2024, 3, 11), today) == "This Week"
    assert format_week_label(date(2024, 3, 4), today) == "Last Week"
    assert format_week_label(date(2024, 2, 26), today) == "Feb 26 - Mar 3"

def test_editing_flag_persists(store, cache):
    calendar = CalendarService(store)
    assert calendar.editable is False
    calendar.enable_editing()
    assert CalendarService(store).editable is True
    assert cache.load_calendar_editable() is True

def test_cycle_day_requires_editing(store):
    habit = store.add_habit("Read", start_date="2024-03-01")
    calendar = CalendarService(store)
    assert calendar.cycle_day(habit.id, "2024-03-12") is None
    assert store.get_day_state(habit.id, "2024-03-12") == 0

    calendar.enable_editing()
    assert calendar.cycle_day(habit.id, "2024-03-12") == 1
    assert store.get_day_state(habit.id, "2024-03-12") == 1

def test_weeks_follow_earliest_habit(store):
    store.add_habit("Read", start_date="2024-03-05")
    calendar = CalendarService(store)
    assert calendar.weeks() == [date(2024, 3, 11), date(2024, 3, 4)]
    assert [state for _, state in calendar.week_states(store.habits[0].id, date(2024, 3, 11))] == [0] * 7

async def test_disable_editing_syncs(store, remote, identity, coordinator):
    await identity.sign_in("u1")
    await coordinator.wait_idle()
    habit = store.add_habit("Read")
    await coordinator.wait_idle()
    calendar = CalendarService(store, coordinator)
    calendar.enable_editing()
    calendar.cycle_day(habit.id, "2024-03-12")

    assert await calendar.disable_editing() is True
    assert calendar.editable is False
    assert remote.documents["u1"]["completions"][habit.id]["2024-03-12"] == {"single": 1}

async def test_disable_editing_reports_sync_failure(store, cache, identity):
    remote = FailingRemoteStore()
    coordinator = SyncCoordinator(store, remote, identity)
    await coordinator.start()
    await identity.sign_in("u1")
    await coordinator.wait_idle()
    remote.fail_writes = True

    calendar = CalendarService(store, coordinator)
    calendar.enable_editing()
    assert await calendar.disable_editing() is False
    assert cache.load_calendar_editable() is False
    await coordinator.stop()

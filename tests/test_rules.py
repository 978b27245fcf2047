from datetime import date, datetime, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo

from expiry_tracker.reminders.rules import ReminderTime, compute_reminder_times

UTC = dt_timezone.utc


def at(y, m, d, hour=9, minute=0):
    return datetime(y, m, d, hour, minute, tzinfo=UTC)


def test_all_offsets_in_future():
    times = compute_reminder_times(date(2026, 11, 30), [30, 15, 7, 1], now=at(2026, 10, 19, 12))
    assert times == [
        ReminderTime(30, at(2026, 10, 31)),
        ReminderTime(15, at(2026, 11, 15)),
        ReminderTime(7, at(2026, 11, 23)),
        ReminderTime(1, at(2026, 11, 29)),
    ]


def test_past_offsets_are_dropped():
    times = compute_reminder_times(date(2026, 11, 30), [30, 15, 7, 1], now=at(2026, 11, 20, 10))
    assert [t.offset_days for t in times] == [7, 1]


def test_fire_time_equal_to_now_is_dropped():
    times = compute_reminder_times(date(2026, 11, 30), [7, 1], now=at(2026, 11, 23, 9))
    assert [t.offset_days for t in times] == [1]


def test_empty_offsets():
    assert compute_reminder_times(date(2026, 11, 30), [], now=at(2026, 10, 19)) == []


def test_duplicate_offsets_are_not_collapsed():
    times = compute_reminder_times(date(2026, 11, 30), [7, 7], now=at(2026, 10, 19))
    assert len(times) == 2


def test_expiry_in_the_past_yields_nothing():
    assert compute_reminder_times(date(2026, 10, 1), [30, 15, 7, 1], now=at(2026, 10, 19)) == []


def test_send_hour_is_local_to_timezone():
    times = compute_reminder_times(
        date(2026, 7, 10), [1], now=at(2026, 6, 1), tz=ZoneInfo("Europe/Berlin")
    )
    # 09:00 CEST is 07:00 UTC
    assert times[0].fire_at == at(2026, 7, 9, 7)
    assert times[0].fire_at.tzinfo == UTC


def test_custom_hour():
    times = compute_reminder_times(date(2026, 11, 30), [1], now=at(2026, 10, 19), hour=18)
    assert times[0].fire_at == at(2026, 11, 29, 18)


def test_week_out_item_before_and_after_send_hour():
    today = date(2026, 10, 19)
    expiry = today + timedelta(days=7)

    before = compute_reminder_times(expiry, [7, 1], now=at(2026, 10, 19, 8))
    assert [(t.offset_days, t.fire_at) for t in before] == [
        (7, at(2026, 10, 19)),
        (1, at(2026, 10, 25)),
    ]

    after = compute_reminder_times(expiry, [7, 1], now=at(2026, 10, 19, 10))
    assert [t.offset_days for t in after] == [1]


def test_naive_now_is_treated_as_utc():
    times = compute_reminder_times(date(2026, 11, 30), [1], now=datetime(2026, 11, 29, 8, 59))
    assert len(times) == 1

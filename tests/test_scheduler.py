from datetime import date, datetime, timezone as dt_timezone

import pytest

from expiry_tracker import crud
from expiry_tracker.core.exceptions import ReminderSchedulingError
from expiry_tracker.models.reminder import ReminderStatus
from expiry_tracker.reminders import repository
from expiry_tracker.reminders.queue import QueuedJob
from expiry_tracker.reminders.scheduler import SEND_EXPIRY_TASK, ReminderScheduler
from expiry_tracker.schemas.notifications import NotificationPreferencesUpdate

from tests.conftest import FIXED_NOW
from tests.helpers import make_document, make_food, reminders_for

UTC = dt_timezone.utc
EXPIRY = date(2026, 11, 30)


@pytest.fixture()
def scheduler(db, queue):
    return ReminderScheduler(db, queue, now=lambda: FIXED_NOW)


def schedule(scheduler, item):
    return scheduler.schedule_for_new_item(item.user_id, item.id, item.item_type, item.name, item.expiry_date)


def test_schedule_creates_pending_reminders_and_jobs(db, queue, scheduler, user):
    item = make_food(db, user, EXPIRY)

    created = schedule(scheduler, item)

    assert [r.offset_days for r in created] == [30, 15, 7, 1]
    assert len(queue.submitted) == 4
    first = queue.submitted[0]
    assert first["job_type"] == SEND_EXPIRY_TASK
    assert first["job_id"] == str(created[0].id)
    assert first["payload"] == {
        "reminder_id": str(created[0].id),
        "user_id": user.id,
        "item_id": item.id,
        "item_type": "FOOD",
        "item_name": "Milk",
        "expiry_date": "2026-11-30",
        "offset_days": 30,
    }
    assert first["delay"] == (datetime(2026, 10, 31, 9, tzinfo=UTC) - FIXED_NOW).total_seconds()

    rows = reminders_for(db, item.id, ReminderStatus.PENDING)
    assert len(rows) == 4
    assert {r.job_key for r in rows} == {f"expiry-{item.id}-{d}" for d in (30, 15, 7, 1)}
    assert all(r.job_id == str(r.id) for r in rows)


def test_schedule_is_idempotent(db, queue, scheduler, user):
    item = make_food(db, user, EXPIRY)
    schedule(scheduler, item)

    assert schedule(scheduler, item) == []
    assert len(queue.submitted) == 4
    assert len(reminders_for(db, item.id, ReminderStatus.PENDING)) == 4


def test_sent_reminders_suppress_rescheduling(db, queue, scheduler, user):
    item = make_food(db, user, EXPIRY)
    for r in schedule(scheduler, item):
        repository.mark_sent(db, r.id)

    assert schedule(scheduler, item) == []
    assert len(reminders_for(db, item.id, ReminderStatus.SENT)) == 4


def test_only_future_offsets_are_scheduled(db, queue, user):
    item = make_food(db, user, EXPIRY)
    late = ReminderScheduler(db, queue, now=lambda: datetime(2026, 11, 20, 10, tzinfo=UTC))

    created = schedule(late, item)

    assert [r.offset_days for r in created] == [7, 1]


def test_master_switch_off_schedules_nothing(db, queue, scheduler, user):
    crud.notification_preference.update(db, user_id=user.id, obj_in=NotificationPreferencesUpdate(enabled=False))
    item = make_food(db, user, EXPIRY)

    assert schedule(scheduler, item) == []
    assert queue.submitted == []


def test_per_type_switch(db, queue, scheduler, user):
    crud.notification_preference.update(
        db, user_id=user.id, obj_in=NotificationPreferencesUpdate(food_notifications_enabled=False)
    )
    food = make_food(db, user, EXPIRY)
    doc = make_document(db, user, EXPIRY)

    assert schedule(scheduler, food) == []
    assert len(schedule(scheduler, doc)) == 4


def test_custom_intervals(db, queue, scheduler, user):
    crud.notification_preference.update(db, user_id=user.id, obj_in=NotificationPreferencesUpdate(intervals=[3, 3, 10]))
    item = make_food(db, user, EXPIRY)

    created = schedule(scheduler, item)

    assert [r.offset_days for r in created] == [10, 3]


def test_empty_intervals_schedule_nothing(db, queue, scheduler, user):
    crud.notification_preference.update(db, user_id=user.id, obj_in=NotificationPreferencesUpdate(intervals=[]))
    item = make_food(db, user, EXPIRY)

    assert schedule(scheduler, item) == []
    assert queue.submitted == []
    assert crud.notification_preference.get(db, user_id=user.id).enabled is True


def test_missing_preference_uses_defaults(db, queue, scheduler, user):
    assert crud.notification_preference.get(db, user_id=user.id) is None
    item = make_food(db, user, EXPIRY)

    assert len(schedule(scheduler, item)) == 4
    assert crud.notification_preference.get(db, user_id=user.id).intervals == [30, 15, 7, 1]


def test_reschedule_replaces_old_reminders(db, queue, scheduler, user):
    item = make_food(db, user, EXPIRY)
    old_ids = {str(r.id) for r in schedule(scheduler, item)}

    item.expiry_date = date(2026, 12, 31)
    db.commit()
    scheduler.reschedule_for_edited_item(user.id, item.id, item.item_type, item.name, item.expiry_date)

    pending = reminders_for(db, item.id, ReminderStatus.PENDING)
    assert [r.scheduled_for.date() for r in pending] == [
        date(2026, 12, 1),
        date(2026, 12, 16),
        date(2026, 12, 24),
        date(2026, 12, 30),
    ]
    assert old_ids <= set(queue.cancelled)
    assert len(reminders_for(db, item.id, ReminderStatus.CANCELLED)) == 4


def test_reschedule_with_unchanged_date_recreates_reminders(db, queue, scheduler, user):
    item = make_food(db, user, EXPIRY)
    schedule(scheduler, item)

    created = scheduler.reschedule_for_edited_item(user.id, item.id, item.item_type, item.name, item.expiry_date)

    assert len(created) == 4
    assert len(reminders_for(db, item.id, ReminderStatus.PENDING)) == 4
    assert len(queue.jobs) == 4


def test_cancel_all_for_item_keeps_sent_history(db, queue, scheduler, user):
    item = make_food(db, user, EXPIRY)
    created = schedule(scheduler, item)
    repository.mark_sent(db, created[0].id)

    cancelled = scheduler.cancel_all_for_item(item.id)

    assert cancelled == 3
    assert len(reminders_for(db, item.id, ReminderStatus.SENT)) == 1
    assert reminders_for(db, item.id, ReminderStatus.PENDING) == []
    assert queue.list_pending(item_id=item.id) == []


def test_cancel_revokes_queued_jobs_without_ledger_rows(db, queue, scheduler, user):
    item = make_food(db, user, EXPIRY)
    queue.jobs["stray"] = QueuedJob("stray", SEND_EXPIRY_TASK, {"item_id": item.id})
    queue.jobs["other"] = QueuedJob("other", SEND_EXPIRY_TASK, {"item_id": item.id + 1})

    scheduler.cancel_all_for_item(item.id)

    assert "stray" in queue.cancelled
    assert "other" not in queue.cancelled


def test_submit_failure_raises_and_leaves_no_pending_row(db, queue, scheduler, user):
    item = make_food(db, user, EXPIRY)
    queue.fail_submit = True

    with pytest.raises(ReminderSchedulingError):
        schedule(scheduler, item)

    assert reminders_for(db, item.id, ReminderStatus.PENDING) == []


def test_losing_concurrent_insert_returns_none(db, user):
    item = make_food(db, user, EXPIRY)
    fire_at = datetime(2026, 11, 29, 9, tzinfo=UTC)
    kwargs = dict(user_id=user.id, item_id=item.id, item_type="FOOD", offset_days=1, scheduled_for=fire_at)

    assert repository.create_expiry_reminder(db, **kwargs) is not None
    assert repository.create_expiry_reminder(db, **kwargs) is None
    assert repository.has_pending_reminder(db, item.id, 1, fire_at)
    assert not repository.has_pending_reminder(db, item.id, 1, datetime(2026, 11, 28, 9, tzinfo=UTC))

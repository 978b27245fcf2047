from datetime import date, datetime, timezone as dt_timezone

import pytest

from expiry_tracker import crud
from expiry_tracker.core.exceptions import DeliveryError
from expiry_tracker.models.reminder import ReminderStatus
from expiry_tracker.reminders import repository
from expiry_tracker.reminders.dispatcher import (
    NO_DESTINATION_REASON,
    OUTCOME_NO_DESTINATION,
    OUTCOME_SENT,
    OUTCOME_SKIPPED,
    build_expiry_body,
    build_expiry_title,
    deliver_reminder,
)

from tests.helpers import make_document, make_food, reminders_for

UTC = dt_timezone.utc
EXPIRY = date(2026, 11, 30)


def make_reminder(db, user, item, offset_days=7):
    return repository.create_expiry_reminder(
        db,
        user_id=user.id,
        item_id=item.id,
        item_type=item.item_type,
        offset_days=offset_days,
        scheduled_for=datetime(2026, 11, 30 - offset_days, 9, tzinfo=UTC),
    )


def register(db, user, *tokens):
    for token in tokens:
        crud.devices.register_fcm_token(db, user_id=user.id, token=token, platform="ios")


def payload_for(reminder):
    return {"reminder_id": str(reminder.id), "item_id": reminder.item_id, "offset_days": reminder.offset_days}


def reload(db, reminder):
    db.expire_all()
    return repository.get_reminder(db, reminder.id)


@pytest.mark.parametrize(
    "days_left,expected",
    [
        (0, "Milk expires today!"),
        (1, "Milk expires tomorrow"),
        (7, "Milk expires in 7 days"),
    ],
)
def test_expiry_titles(days_left, expected):
    assert build_expiry_title("Milk", days_left) == expected


def test_expiry_bodies():
    assert build_expiry_body("FOOD") == "Check your food items to avoid waste"
    assert build_expiry_body("DOCUMENT") == "Renew your document before it expires"


def test_single_destination_is_sent(db, push, user):
    item = make_food(db, user, EXPIRY)
    reminder = make_reminder(db, user, item, offset_days=1)
    register(db, user, "token-a")

    assert deliver_reminder(db, push, payload_for(reminder)) == OUTCOME_SENT

    assert push.sent == [
        {
            "tokens": ["token-a"],
            "title": "Milk expires tomorrow",
            "body": "Check your food items to avoid waste",
            "data": {
                "type": "expiry_reminder",
                "reminder_id": str(reminder.id),
                "item_id": item.id,
                "item_type": "FOOD",
            },
        }
    ]
    stored = reload(db, reminder)
    assert stored.status == ReminderStatus.SENT.value
    assert stored.sent_at is not None
    assert stored.title == "Milk expires tomorrow"


def test_several_destinations_use_multicast(db, push, user):
    item = make_document(db, user, EXPIRY)
    reminder = make_reminder(db, user, item)
    register(db, user, "token-a", "token-b")

    deliver_reminder(db, push, payload_for(reminder))

    assert len(push.sent) == 1
    assert sorted(push.sent[0]["tokens"]) == ["token-a", "token-b"]
    assert push.sent[0]["body"] == "Renew your document before it expires"


def test_no_destination_fails_without_retry(db, push, user):
    item = make_food(db, user, EXPIRY)
    reminder = make_reminder(db, user, item)

    assert deliver_reminder(db, push, payload_for(reminder), final_attempt=False) == OUTCOME_NO_DESTINATION

    stored = reload(db, reminder)
    assert stored.status == ReminderStatus.FAILED.value
    assert stored.error_message == NO_DESTINATION_REASON
    assert push.sent == []


def test_cancelled_reminder_is_skipped(db, push, user):
    item = make_food(db, user, EXPIRY)
    reminder = make_reminder(db, user, item)
    register(db, user, "token-a")
    repository.cancel_reminders(db, [reminder])

    assert deliver_reminder(db, push, payload_for(reminder)) == OUTCOME_SKIPPED
    assert push.sent == []


def test_already_sent_reminder_is_skipped(db, push, user):
    item = make_food(db, user, EXPIRY)
    reminder = make_reminder(db, user, item)
    register(db, user, "token-a")
    deliver_reminder(db, push, payload_for(reminder))

    assert deliver_reminder(db, push, payload_for(reminder)) == OUTCOME_SKIPPED
    assert len(push.sent) == 1


def test_failed_attempt_stays_pending_until_last_retry(db, push, user):
    item = make_food(db, user, EXPIRY)
    reminder = make_reminder(db, user, item)
    register(db, user, "token-a")
    push.fail = True

    with pytest.raises(DeliveryError):
        deliver_reminder(db, push, payload_for(reminder), final_attempt=False)
    stored = reload(db, reminder)
    assert stored.status == ReminderStatus.PENDING.value
    assert stored.attempts == 1
    assert stored.error_message == "provider unavailable"

    with pytest.raises(DeliveryError):
        deliver_reminder(db, push, payload_for(reminder), final_attempt=True)
    stored = reload(db, reminder)
    assert stored.status == ReminderStatus.FAILED.value
    assert stored.attempts == 2


def test_multicast_prunes_unregistered_tokens(db, push, user):
    item = make_food(db, user, EXPIRY)
    reminder = make_reminder(db, user, item)
    register(db, user, "token-good", "token-stale")
    push.invalid_tokens = {"token-stale"}

    assert deliver_reminder(db, push, payload_for(reminder)) == OUTCOME_SENT
    assert crud.devices.list_user_tokens(db, user_id=user.id) == ["token-good"]


def test_multicast_with_every_token_failing_is_a_failure(db, push, user):
    item = make_food(db, user, EXPIRY)
    reminder = make_reminder(db, user, item)
    register(db, user, "token-a", "token-b")
    push.invalid_tokens = {"token-a", "token-b"}

    with pytest.raises(DeliveryError):
        deliver_reminder(db, push, payload_for(reminder))

    assert reload(db, reminder).status == ReminderStatus.FAILED.value
    assert crud.devices.list_user_tokens(db, user_id=user.id) == []


def test_broadcast_reminder_uses_stored_text(db, push, user):
    register(db, user, "token-a")
    repository.create_broadcast_reminders(
        db,
        user_ids=[user.id],
        title="Maintenance",
        body="We will be back soon",
        scheduled_for=datetime(2026, 10, 19, 12, tzinfo=UTC),
        external_id="broadcast_1",
        batch_size=100,
    )
    (reminder_id,) = repository.pending_broadcast_ids(db, "broadcast_1")

    assert deliver_reminder(db, push, {"reminder_id": str(reminder_id)}) == OUTCOME_SENT
    assert push.sent[0]["title"] == "Maintenance"
    assert push.sent[0]["body"] == "We will be back soon"
    assert reminders_for(db, user_id=user.id, status=ReminderStatus.SENT)[0].external_id == "broadcast_1"

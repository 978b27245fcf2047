"""Delivery of due reminders through the push provider.

The worker side of the reminder lifecycle: it is the only place that moves a
reminder from PENDING to SENT or FAILED.
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from expiry_tracker.core.exceptions import DeliveryError
from expiry_tracker.crud import devices
from expiry_tracker.models.item import ItemType
from expiry_tracker.models.reminder import Reminder, ReminderStatus
from . import repository
from .metrics import reminders_dispatch_failed_total, reminders_dispatch_success_total

logger = logging.getLogger(__name__)

OUTCOME_SENT = "sent"
OUTCOME_SKIPPED = "skipped"
OUTCOME_NO_DESTINATION = "no_destination"

NO_DESTINATION_REASON = "no destination: user has no registered devices"


def build_expiry_title(item_name: str, days_left: int) -> str:
    if days_left <= 0:
        return f"{item_name} expires today!"
    if days_left == 1:
        return f"{item_name} expires tomorrow"
    return f"{item_name} expires in {days_left} days"


def build_expiry_body(item_type: Optional[str]) -> str:
    if item_type == ItemType.FOOD.value:
        return "Check your food items to avoid waste"
    return "Renew your document before it expires"


def _render(reminder: Reminder, payload: Dict[str, Any]):
    if reminder.is_broadcast:
        return reminder.title or "", reminder.body or "", {
            "type": "broadcast",
            "reminder_id": str(reminder.id),
            "broadcast_id": reminder.external_id,
        }
    name = reminder.item.name if reminder.item is not None else payload.get("item_name") or "Your item"
    days_left = reminder.offset_days if reminder.offset_days is not None else int(payload.get("offset_days", 0))
    title = build_expiry_title(name, days_left)
    body = build_expiry_body(reminder.item_type)
    data = {
        "type": "expiry_reminder",
        "reminder_id": str(reminder.id),
        "item_id": reminder.item_id,
        "item_type": reminder.item_type,
    }
    return title, body, data


def _send(db: Session, push, tokens: List[str], title: str, body: str, data: Dict[str, Any]) -> None:
    if len(tokens) == 1:
        try:
            push.send_to_one(tokens[0], title, body, data)
        except DeliveryError as e:
            if e.invalid_tokens:
                devices.prune_tokens(db, tokens=e.invalid_tokens)
            raise
        return

    result = push.send_to_many(tokens, title, body, data)
    if result.invalid_tokens:
        pruned = devices.prune_tokens(db, tokens=result.invalid_tokens)
        logger.info(f"[FCM] Pruned {pruned} unregistered token(s)")
    if result.success_count == 0:
        reason = "; ".join(result.errors[:3]) or "all destinations failed"
        raise DeliveryError(reason)


def deliver_reminder(
    db: Session,
    push,
    payload: Dict[str, Any],
    final_attempt: bool = True,
) -> str:
    """Send one reminder. Raises DeliveryError when the attempt failed."""
    reminder_id = payload.get("reminder_id")
    reminder = repository.get_reminder(db, reminder_id) if reminder_id else None
    if reminder is None or reminder.status != ReminderStatus.PENDING.value:
        logger.info(f"[Dispatch] Skipping reminder {reminder_id}: not pending")
        return OUTCOME_SKIPPED

    tokens = devices.list_user_tokens(db, user_id=reminder.user_id)
    if not tokens:
        repository.mark_failed(db, reminder.id, reason=NO_DESTINATION_REASON)
        reminders_dispatch_failed_total.inc()
        logger.warning(f"[Dispatch] No destination for user={reminder.user_id} reminder={reminder.id}")
        return OUTCOME_NO_DESTINATION

    title, body, data = _render(reminder, payload)
    reminder.title, reminder.body = title, body
    db.add(reminder)
    db.commit()

    try:
        _send(db, push, tokens, title, body, data)
    except DeliveryError as e:
        reminders_dispatch_failed_total.inc()
        if final_attempt or not e.retryable:
            repository.mark_failed(db, reminder.id, reason=str(e))
            logger.error(f"[Dispatch] Reminder {reminder.id} failed: {e}")
        else:
            repository.record_attempt(db, reminder.id, reason=str(e))
            logger.warning(f"[Dispatch] Reminder {reminder.id} attempt failed, will retry: {e}")
        raise

    repository.mark_sent(db, reminder.id)
    reminders_dispatch_success_total.inc()
    logger.info(f"[Dispatch] Reminder {reminder.id} sent to {len(tokens)} device(s)")
    return OUTCOME_SENT


def send_test_notification(db: Session, push, user_id: int) -> Dict[str, Any]:
    tokens = devices.list_user_tokens(db, user_id=user_id)
    if not tokens:
        logger.warning(f"[Dispatch] No FCM tokens registered for user={user_id}")
        return {"success": False, "message": "No FCM tokens registered"}
    title = "Test notification"
    body = "Push notifications are working"
    data = {"type": "test"}
    if len(tokens) == 1:
        try:
            message_id = push.send_to_one(tokens[0], title, body, data)
        except DeliveryError as e:
            if e.invalid_tokens:
                devices.prune_tokens(db, tokens=e.invalid_tokens)
            raise
        return {"success": True, "message": "Notification sent", "message_id": message_id}
    result = push.send_to_many(tokens, title, body, data)
    if result.invalid_tokens:
        devices.prune_tokens(db, tokens=result.invalid_tokens)
    return {
        "success": result.success_count > 0,
        "message": f"Sent to {result.success_count} of {len(tokens)} device(s)",
        "success_count": result.success_count,
        "failure_count": result.failure_count,
    }

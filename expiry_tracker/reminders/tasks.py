from typing import Dict
from celery import shared_task
from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from expiry_tracker.core.exceptions import DeliveryError
from expiry_tracker.db.session import SessionLocal
from . import repository
from .config import settings
from .dispatcher import OUTCOME_SENT, OUTCOME_SKIPPED, deliver_reminder
from .push import get_push_provider
from .queue import get_job_queue
from .reconciliation import reconcile_all_users

logger = get_task_logger(__name__)


@shared_task(name="reminders.send_expiry", bind=True, max_retries=settings.DELIVERY_MAX_ATTEMPTS - 1)
def send_expiry_task(self, payload: dict) -> str:
    """Deliver one expiry reminder, retrying with exponential backoff."""
    db: Session = SessionLocal()
    try:
        final_attempt = self.request.retries >= self.max_retries
        try:
            return deliver_reminder(db, get_push_provider(), payload, final_attempt=final_attempt)
        except DeliveryError as e:
            if final_attempt or not e.retryable:
                raise
            countdown = settings.DELIVERY_BACKOFF_SECONDS * (2 ** self.request.retries)
            logger.info(f"[Dispatch] Retrying {payload.get('reminder_id')} in {countdown}s")
            raise self.retry(exc=e, countdown=countdown)
    finally:
        db.close()


@shared_task(name="reminders.dispatch_broadcast")
def dispatch_broadcast_task(payload: dict) -> Dict[str, int]:
    """Deliver every PENDING reminder of one admin broadcast."""
    broadcast_id = payload["broadcast_id"]
    db: Session = SessionLocal()
    stats = {"sent": 0, "failed": 0, "skipped": 0}
    try:
        push = get_push_provider()
        for reminder_id in repository.pending_broadcast_ids(db, broadcast_id):
            try:
                outcome = deliver_reminder(db, push, {"reminder_id": str(reminder_id)}, final_attempt=True)
            except DeliveryError:
                # Already recorded as FAILED on the reminder
                stats["failed"] += 1
                continue
            if outcome == OUTCOME_SENT:
                stats["sent"] += 1
            elif outcome == OUTCOME_SKIPPED:
                stats["skipped"] += 1
            else:
                stats["failed"] += 1
    finally:
        db.close()
    logger.info(f"[Broadcast] {broadcast_id} done | {stats}")
    return stats


@shared_task(name="reminders.reconcile")
def reconcile_task() -> Dict[str, int]:
    db: Session = SessionLocal()
    try:
        return reconcile_all_users(db, get_job_queue())
    finally:
        db.close()

"""Expiry reminder scheduling.

The scheduler is the only writer of PENDING reminders and the only component
that submits or cancels delivery jobs. Every reminder is keyed by
``expiry-{item_id}-{offset_days}``; a PENDING or SENT row with the same key and
fire time means the reminder is already taken care of.
"""
import logging
from datetime import date, datetime
from typing import Callable, List, Optional
from sqlalchemy.orm import Session

from expiry_tracker import crud
from expiry_tracker.core.exceptions import ReminderSchedulingError
from expiry_tracker.models.reminder import Reminder
from expiry_tracker.utils.timezone import get_zoneinfo, utcnow
from . import repository
from .config import settings
from .metrics import reminders_cancelled_total, reminders_scheduled_total
from .rules import compute_reminder_times

logger = logging.getLogger(__name__)

SEND_EXPIRY_TASK = "reminders.send_expiry"


class ReminderScheduler:
    def __init__(self, db: Session, queue, now: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.queue = queue
        self._now = now or utcnow

    def _offsets_for(self, user_id: int, item_type: str) -> List[int]:
        pref = crud.notification_preference.get_or_create(self.db, user_id=user_id)
        if not pref.notifications_enabled_for(item_type):
            return []
        # An empty list turns reminders off; only a missing list means defaults
        if pref.intervals is None:
            return list(settings.DEFAULT_INTERVALS)
        return list(pref.intervals)

    def schedule_for_new_item(
        self,
        user_id: int,
        item_id: int,
        item_type: str,
        item_name: str,
        expiry_date: date,
    ) -> List[Reminder]:
        """Create and enqueue the reminders this item still needs. Safe to call repeatedly."""
        offsets = self._offsets_for(user_id, item_type)
        if not offsets:
            logger.debug(f"[Scheduler] Notifications off for user={user_id} type={item_type}")
            return []

        now = self._now()
        created: List[Reminder] = []
        for rt in compute_reminder_times(expiry_date, offsets, now, tz=get_zoneinfo()):
            if repository.has_pending_reminder(self.db, item_id, rt.offset_days, rt.fire_at):
                continue
            reminder = repository.create_expiry_reminder(
                self.db,
                user_id=user_id,
                item_id=item_id,
                item_type=item_type,
                offset_days=rt.offset_days,
                scheduled_for=rt.fire_at,
            )
            if reminder is None:
                continue

            payload = {
                "reminder_id": str(reminder.id),
                "user_id": user_id,
                "item_id": item_id,
                "item_type": item_type,
                "item_name": item_name,
                "expiry_date": expiry_date.isoformat(),
                "offset_days": rt.offset_days,
            }
            delay = (rt.fire_at - now).total_seconds()
            try:
                job_id = self.queue.submit(SEND_EXPIRY_TASK, payload, delay, str(reminder.id))
            except Exception as e:
                logger.error(f"[Scheduler] Failed to submit {reminder.job_key}: {e!r}")
                # Leave no orphan PENDING row behind a job that was never queued
                repository.cancel_reminders(self.db, [reminder])
                raise ReminderSchedulingError(f"could not enqueue reminder {reminder.job_key}") from e
            repository.set_job_id(self.db, reminder, job_id)
            reminders_scheduled_total.inc()
            created.append(reminder)

        if created:
            logger.info(f"[Scheduler] Scheduled {len(created)} reminder(s) for item={item_id}")
        return created

    def reschedule_for_edited_item(
        self,
        user_id: int,
        item_id: int,
        item_type: str,
        item_name: str,
        expiry_date: date,
    ) -> List[Reminder]:
        self.cancel_all_for_item(item_id)
        return self.schedule_for_new_item(user_id, item_id, item_type, item_name, expiry_date)

    def cancel_all_for_item(self, item_id: int) -> int:
        """Revoke queued jobs for the item and mark its PENDING reminders CANCELLED."""
        pending = repository.pending_for_item(self.db, item_id)
        revoked = set()
        queue_error: Optional[Exception] = None
        try:
            for job in self.queue.list_pending(item_id=item_id):
                self.queue.cancel(job.job_id)
                revoked.add(job.job_id)
            for r in pending:
                if r.job_id and r.job_id not in revoked:
                    self.queue.cancel(r.job_id)
                    revoked.add(r.job_id)
        except Exception as e:
            logger.error(f"[Scheduler] Failed to revoke jobs for item={item_id}: {e!r}")
            queue_error = e

        # The worker re-checks status, so a CANCELLED row is enough to stop delivery
        cancelled = repository.cancel_reminders(self.db, pending)
        if cancelled:
            reminders_cancelled_total.inc(cancelled)
        logger.info(f"[Scheduler] Cancelled {cancelled} reminder(s), revoked {len(revoked)} job(s) for item={item_id}")
        if queue_error is not None:
            raise ReminderSchedulingError(f"could not revoke jobs for item {item_id}") from queue_error
        return cancelled

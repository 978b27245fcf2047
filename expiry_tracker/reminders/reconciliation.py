"""Periodic pass that fills any gaps left by item writes.

Runs from Celery beat. Scheduling is idempotent, so a pass over items whose
reminders are all in place submits nothing.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from expiry_tracker import crud
from expiry_tracker.models.notification_preference import NotificationPreference
from expiry_tracker.models.user import User
from .metrics import reconcile_failures_total, reconcile_runs_total
from .scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


def _eligible_user_ids(db: Session):
    rows = (
        db.query(User.id)
        .outerjoin(NotificationPreference, NotificationPreference.user_id == User.id)
        .filter(User.is_active.is_(True))
        .filter(or_(NotificationPreference.id.is_(None), NotificationPreference.enabled.is_(True)))
        .order_by(User.id.asc())
        .all()
    )
    return [r[0] for r in rows]


def reconcile_all_users(db: Session, queue, now: Optional[Callable[[], datetime]] = None) -> Dict[str, int]:
    scheduler = ReminderScheduler(db, queue, now=now)
    stats = {"users": 0, "items": 0, "scheduled": 0, "failures": 0}
    reconcile_runs_total.inc()

    for user_id in _eligible_user_ids(db):
        stats["users"] += 1
        try:
            items = crud.item.list_for_user(db, user_id=user_id)
        except Exception as e:
            db.rollback()
            stats["failures"] += 1
            reconcile_failures_total.inc()
            logger.error(f"[Reconcile] Failed to load items for user={user_id}: {e!r}")
            continue

        for item in items:
            stats["items"] += 1
            try:
                created = scheduler.schedule_for_new_item(
                    user_id, item.id, item.item_type, item.name, item.expiry_date
                )
            except Exception as e:
                db.rollback()
                stats["failures"] += 1
                reconcile_failures_total.inc()
                logger.error(f"[Reconcile] Failed for user={user_id} item={item.id}: {e!r}")
                continue
            stats["scheduled"] += len(created)

    logger.info(
        f"[Reconcile] Done | users={stats['users']} items={stats['items']} "
        f"scheduled={stats['scheduled']} failures={stats['failures']}"
    )
    return stats

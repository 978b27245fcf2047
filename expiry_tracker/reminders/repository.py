import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple, Union
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from expiry_tracker.models.reminder import Reminder, ReminderStatus, expiry_job_key
from expiry_tracker.utils.timezone import to_utc_aware, to_utc_naive, utcnow

logger = logging.getLogger(__name__)

LIVE_STATUSES = (ReminderStatus.PENDING.value, ReminderStatus.SENT.value)


def _as_uuid(reminder_id: Union[str, uuid.UUID]) -> uuid.UUID:
    return reminder_id if isinstance(reminder_id, uuid.UUID) else uuid.UUID(str(reminder_id))


def has_pending_reminder(db: Session, item_id: int, offset_days: int, scheduled_for: datetime) -> bool:
    """True when a PENDING or SENT reminder already covers this key and fire time."""
    stmt = (
        select(func.count(Reminder.id))
        .where(Reminder.job_key == expiry_job_key(item_id, offset_days))
        .where(Reminder.scheduled_for == to_utc_aware(scheduled_for))
        .where(Reminder.status.in_(LIVE_STATUSES))
    )
    return bool(db.execute(stmt).scalar())


def create_expiry_reminder(
    db: Session,
    *,
    user_id: int,
    item_id: int,
    item_type: str,
    offset_days: int,
    scheduled_for: datetime,
) -> Optional[Reminder]:
    """Insert a PENDING reminder, or return None if a concurrent writer got there first."""
    reminder = Reminder(
        user_id=user_id,
        item_id=item_id,
        item_type=item_type,
        offset_days=offset_days,
        job_key=expiry_job_key(item_id, offset_days),
        scheduled_for=to_utc_aware(scheduled_for),
        status=ReminderStatus.PENDING.value,
    )
    db.add(reminder)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info(
            f"[Scheduler] Reminder {expiry_job_key(item_id, offset_days)} at {scheduled_for.isoformat()} already exists"
        )
        return None
    db.refresh(reminder)
    return reminder


def set_job_id(db: Session, reminder: Reminder, job_id: str) -> None:
    reminder.job_id = job_id
    db.add(reminder)
    db.commit()


def get_reminder(db: Session, reminder_id: Union[str, uuid.UUID]) -> Optional[Reminder]:
    return db.get(Reminder, _as_uuid(reminder_id))


def pending_for_item(db: Session, item_id: int) -> List[Reminder]:
    stmt = (
        select(Reminder)
        .where(Reminder.item_id == item_id)
        .where(Reminder.status == ReminderStatus.PENDING.value)
    )
    return list(db.execute(stmt).scalars())


def cancel_reminders(db: Session, reminders: Iterable[Reminder]) -> int:
    count = 0
    for r in reminders:
        if r.status != ReminderStatus.PENDING.value:
            continue
        r.status = ReminderStatus.CANCELLED.value
        db.add(r)
        count += 1
    db.commit()
    return count


def mark_sent(db: Session, reminder_id: Union[str, uuid.UUID]) -> None:
    db.execute(
        update(Reminder)
        .where(Reminder.id == _as_uuid(reminder_id))
        .where(Reminder.status == ReminderStatus.PENDING.value)
        .values(
            status=ReminderStatus.SENT.value,
            sent_at=utcnow(),
            error_message=None,
            attempts=Reminder.attempts + 1,
        )
    )
    db.commit()


def mark_failed(db: Session, reminder_id: Union[str, uuid.UUID], reason: str) -> None:
    db.execute(
        update(Reminder)
        .where(Reminder.id == _as_uuid(reminder_id))
        .where(Reminder.status == ReminderStatus.PENDING.value)
        .values(
            status=ReminderStatus.FAILED.value,
            error_message=reason,
            attempts=Reminder.attempts + 1,
        )
    )
    db.commit()


def record_attempt(db: Session, reminder_id: Union[str, uuid.UUID], reason: str) -> None:
    """Record a failed attempt that will be retried; the reminder stays PENDING."""
    db.execute(
        update(Reminder)
        .where(Reminder.id == _as_uuid(reminder_id))
        .where(Reminder.status == ReminderStatus.PENDING.value)
        .values(error_message=reason, attempts=Reminder.attempts + 1)
    )
    db.commit()


def create_broadcast_reminders(
    db: Session,
    *,
    user_ids: Sequence[int],
    title: str,
    body: str,
    scheduled_for: datetime,
    external_id: str,
    batch_size: int,
) -> int:
    scheduled_for = to_utc_aware(scheduled_for)
    created = 0
    for start in range(0, len(user_ids), batch_size):
        batch = user_ids[start:start + batch_size]
        db.add_all(
            [
                Reminder(
                    user_id=uid,
                    title=title,
                    body=body,
                    scheduled_for=scheduled_for,
                    status=ReminderStatus.PENDING.value,
                    external_id=external_id,
                )
                for uid in batch
            ]
        )
        db.commit()
        created += len(batch)
    return created


def pending_broadcast_ids(db: Session, external_id: str) -> List[uuid.UUID]:
    stmt = (
        select(Reminder.id)
        .where(Reminder.external_id == external_id)
        .where(Reminder.status == ReminderStatus.PENDING.value)
        .order_by(Reminder.user_id.asc())
    )
    return list(db.execute(stmt).scalars())


def cancel_broadcast(db: Session, external_id: str) -> int:
    result = db.execute(
        update(Reminder)
        .where(Reminder.external_id == external_id)
        .where(Reminder.status == ReminderStatus.PENDING.value)
        .values(status=ReminderStatus.CANCELLED.value)
    )
    db.commit()
    return result.rowcount


def list_user_history(
    db: Session,
    user_id: int,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Reminder], int]:
    base = select(Reminder).where(Reminder.user_id == user_id)
    if status:
        base = base.where(Reminder.status == status)
    total = db.execute(select(func.count()).select_from(base.subquery())).scalar() or 0
    stmt = (
        base.order_by(Reminder.scheduled_for.desc(), Reminder.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars()), int(total)


def count_by_status(db: Session, status: str, since: Optional[datetime] = None) -> int:
    stmt = select(func.count(Reminder.id)).where(Reminder.status == status)
    if since is not None:
        column = Reminder.sent_at if status == ReminderStatus.SENT.value else Reminder.updated_at
        since = to_utc_aware(since) if status == ReminderStatus.SENT.value else to_utc_naive(since)
        stmt = stmt.where(column >= since)
    return int(db.execute(stmt).scalar() or 0)

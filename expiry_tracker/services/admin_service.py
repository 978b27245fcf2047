"""Admin panel queries and the broadcast fan-out."""
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from expiry_tracker.models.item import EXPIRING_SOON_DAYS, ItemType, TrackableItem, expiry_status_for
from expiry_tracker.core.exceptions import ReminderSchedulingError
from expiry_tracker.models.reminder import Reminder, ReminderStatus
from expiry_tracker.models.user import Subscription, SubscriptionPlan, SubscriptionStatus, User
from expiry_tracker.reminders import repository
from expiry_tracker.reminders.config import settings as reminder_settings
from expiry_tracker.reminders.metrics import broadcasts_total
from expiry_tracker.schemas.admin import BroadcastNotification, TargetAudience
from expiry_tracker.utils.timezone import today_local, to_utc_aware, utcnow

logger = logging.getLogger(__name__)

DISPATCH_BROADCAST_TASK = "reminders.dispatch_broadcast"
INACTIVE_AFTER_DAYS = 30


def _premium_clause():
    return and_(
        Subscription.plan == SubscriptionPlan.PREMIUM.value,
        Subscription.status == SubscriptionStatus.ACTIVE.value,
    )


def _users_with_subscription(db: Session):
    return db.query(User).outerjoin(Subscription, Subscription.user_id == User.id)


def _pct(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 1) if whole else 0.0


def dashboard_stats(db: Session) -> dict:
    now = datetime.utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)
    today = today_local()

    total_users = db.query(func.count(User.id)).scalar() or 0
    active_users = db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0
    premium_users = _users_with_subscription(db).filter(_premium_clause()).count()

    def _items(*criteria) -> int:
        return db.query(func.count(TrackableItem.id)).filter(*criteria).scalar() or 0

    sent_today = repository.count_by_status(db, ReminderStatus.SENT.value, since=start_of_day)
    sent_week = repository.count_by_status(db, ReminderStatus.SENT.value, since=week_ago)
    failed_today = repository.count_by_status(db, ReminderStatus.FAILED.value, since=start_of_day)
    failed_week = repository.count_by_status(db, ReminderStatus.FAILED.value, since=week_ago)

    def _new_users(since: datetime) -> int:
        return db.query(func.count(User.id)).filter(User.created_at >= since).scalar() or 0

    return {
        "users": {
            "total": total_users,
            "active": active_users,
            "inactive": total_users - active_users,
            "premium": premium_users,
            "premium_percentage": _pct(premium_users, total_users),
        },
        "items": {
            "total": _items(),
            "food": _items(TrackableItem.item_type == ItemType.FOOD.value),
            "documents": _items(TrackableItem.item_type == ItemType.DOCUMENT.value),
            "expired": _items(TrackableItem.expiry_date < today),
            "expiring_soon": _items(
                TrackableItem.expiry_date >= today,
                TrackableItem.expiry_date <= today + timedelta(days=EXPIRING_SOON_DAYS),
            ),
        },
        "notifications": {
            "sent_today": sent_today,
            "sent_this_week": sent_week,
            "delivery_rate": _pct(sent_week, sent_week + failed_week) if (sent_week + failed_week) else 100.0,
            "failed_today": failed_today,
        },
        "growth": {
            "new_users_today": _new_users(start_of_day),
            "new_users_this_week": _new_users(week_ago),
            "new_users_this_month": _new_users(month_ago),
        },
    }


def _item_counts(db: Session, user_ids: List[int]) -> dict:
    if not user_ids:
        return {}
    rows = (
        db.query(TrackableItem.user_id, func.count(TrackableItem.id))
        .filter(TrackableItem.user_id.in_(user_ids))
        .group_by(TrackableItem.user_id)
        .all()
    )
    return dict(rows)


def _summary(user: User, item_count: int) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_premium": user.is_premium,
        "is_active": user.is_active,
        "item_count": item_count,
        "last_login_at": user.last_login_at,
        "created_at": user.created_at,
    }


def list_users(
    db: Session,
    *,
    status: Optional[str] = None,
    plan: Optional[str] = None,
    search: Optional[str] = None,
    cursor: Optional[int] = None,
    limit: int = 20,
) -> dict:
    """Newest users first; ``cursor`` is the last id of the previous page."""
    query = _users_with_subscription(db)
    if status == "active":
        query = query.filter(User.is_active.is_(True))
    elif status == "inactive":
        query = query.filter(User.is_active.is_(False))
    if plan == SubscriptionPlan.PREMIUM.value:
        query = query.filter(_premium_clause())
    elif plan == SubscriptionPlan.FREE.value:
        query = query.filter(or_(Subscription.id.is_(None), ~_premium_clause()))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(User.email.ilike(pattern), User.first_name.ilike(pattern), User.last_name.ilike(pattern))
        )
    if cursor is not None:
        query = query.filter(User.id < cursor)

    rows = query.order_by(User.id.desc()).limit(limit + 1).all()
    has_more = len(rows) > limit
    users = rows[:limit]
    counts = _item_counts(db, [u.id for u in users])
    return {
        "users": [_summary(u, counts.get(u.id, 0)) for u in users],
        "pagination": {
            "next_cursor": users[-1].id if has_more and users else None,
            "has_more": has_more,
        },
    }


def user_detail(db: Session, user: User) -> dict:
    today = today_local()
    items = (
        db.query(TrackableItem)
        .filter(TrackableItem.user_id == user.id)
        .order_by(TrackableItem.created_at.desc(), TrackableItem.id.desc())
        .all()
    )
    food_count = sum(1 for i in items if i.item_type == ItemType.FOOD.value)
    sent = (
        db.query(func.count())
        .select_from(Reminder)
        .filter(Reminder.user_id == user.id)
        .filter(Reminder.status == ReminderStatus.SENT.value)
        .scalar()
        or 0
    )
    sub = user.subscription
    detail = _summary(user, len(items))
    detail.update(
        {
            "food_item_count": food_count,
            "document_count": len(items) - food_count,
            "notifications_sent": sent,
            "subscription": (
                {"plan": sub.plan, "status": sub.status, "start_date": sub.start_date, "end_date": sub.end_date}
                if sub
                else None
            ),
            "recent_items": [
                {
                    "id": i.id,
                    "name": i.name,
                    "type": i.item_type,
                    "expiry_date": i.expiry_date,
                    "status": expiry_status_for(i.expiry_date, today).value,
                }
                for i in items[:5]
            ],
        }
    )
    return detail


def audience_user_ids(db: Session, audience: TargetAudience) -> List[int]:
    query = _users_with_subscription(db).filter(User.is_active.is_(True))
    if audience == TargetAudience.PREMIUM:
        query = query.filter(_premium_clause())
    elif audience == TargetAudience.FREE:
        query = query.filter(or_(Subscription.id.is_(None), ~_premium_clause()))
    elif audience == TargetAudience.INACTIVE:
        cutoff = datetime.utcnow() - timedelta(days=INACTIVE_AFTER_DAYS)
        query = query.filter(or_(User.last_login_at.is_(None), User.last_login_at < cutoff))
    return [u.id for u in query.order_by(User.id.asc()).all()]


def broadcast(db: Session, queue, obj_in: BroadcastNotification) -> dict:
    now = utcnow()
    broadcast_id = f"broadcast_{int(now.timestamp() * 1000)}"
    user_ids = audience_user_ids(db, obj_in.target_audience)
    if not user_ids:
        logger.info(f"[Broadcast] No users in audience={obj_in.target_audience.value}")
        return {"message": "No users match the target audience", "target_user_count": 0, "broadcast_id": broadcast_id}

    send_at = to_utc_aware(obj_in.schedule_for) if obj_in.schedule_for else now
    created = repository.create_broadcast_reminders(
        db,
        user_ids=user_ids,
        title=obj_in.title,
        body=obj_in.body,
        scheduled_for=send_at,
        external_id=broadcast_id,
        batch_size=reminder_settings.BROADCAST_BATCH_SIZE,
    )
    delay = max(0.0, (send_at - now).total_seconds())
    try:
        queue.submit(DISPATCH_BROADCAST_TASK, {"broadcast_id": broadcast_id}, delay, broadcast_id)
    except Exception as e:
        logger.error(f"[Broadcast] Failed to queue {broadcast_id}: {e!r}")
        repository.cancel_broadcast(db, broadcast_id)
        raise ReminderSchedulingError(f"could not enqueue broadcast {broadcast_id}") from e
    broadcasts_total.inc()
    logger.info(f"[Broadcast] {broadcast_id} queued for {created} user(s), delay={delay:.0f}s")
    return {
        "message": "Broadcast scheduled" if obj_in.schedule_for else "Broadcast queued",
        "target_user_count": created,
        "broadcast_id": broadcast_id,
    }


def queue_stats(db: Session, queue) -> dict:
    counts = queue.counts()
    completed = repository.count_by_status(db, ReminderStatus.SENT.value)
    failed = repository.count_by_status(db, ReminderStatus.FAILED.value)
    stats = {
        "waiting": counts.get("waiting", 0),
        "active": counts.get("active", 0),
        "delayed": counts.get("delayed", 0),
        "completed": completed,
        "failed": failed,
    }
    stats["total"] = sum(stats.values())
    return stats

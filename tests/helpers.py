from datetime import date
from typing import Optional

from expiry_tracker import crud
from expiry_tracker.models.item import DocumentType, FoodCategory, StorageType
from expiry_tracker.models.reminder import Reminder, ReminderStatus
from expiry_tracker.schemas.item import DocumentCreate, FoodItemCreate


def make_food(db, user, expiry: date, name: str = "Milk"):
    return crud.item.create_food(
        db,
        user_id=user.id,
        obj_in=FoodItemCreate(
            name=name,
            category=FoodCategory.DAIRY,
            storage_type=StorageType.REFRIGERATOR,
            expiry_date=expiry,
        ),
    )


def make_document(db, user, expiry: date, name: str = "Passport"):
    return crud.item.create_document(
        db,
        user_id=user.id,
        obj_in=DocumentCreate(name=name, document_type=DocumentType.PASSPORT, expiry_date=expiry),
    )


def reminders_for(db, item_id: Optional[int] = None, status: Optional[ReminderStatus] = None, user_id=None):
    """Fresh read of reminders, bypassing stale identity-map state."""
    db.expire_all()
    query = db.query(Reminder)
    if item_id is not None:
        query = query.filter(Reminder.item_id == item_id)
    if user_id is not None:
        query = query.filter(Reminder.user_id == user_id)
    if status is not None:
        query = query.filter(Reminder.status == status.value)
    return query.order_by(Reminder.scheduled_for.asc()).all()

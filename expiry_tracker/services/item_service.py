"""Item writes and their reminder side effects.

Scheduling problems are logged and never fail the item write; the hourly
reconciliation pass fills whatever was missed.
"""
import logging
from datetime import date
from typing import Optional, Union
from sqlalchemy.orm import Session

from expiry_tracker import crud
from expiry_tracker.core.exceptions import ImageHostError, ReminderSchedulingError
from expiry_tracker.models.item import TrackableItem, expiry_status_for
from expiry_tracker.reminders.scheduler import ReminderScheduler
from expiry_tracker.schemas.item import (
    DocumentCreate,
    DocumentUpdate,
    FoodItemCreate,
    FoodItemUpdate,
    Item,
)
from expiry_tracker.utils.timezone import today_local

logger = logging.getLogger(__name__)


def to_item_schema(item: TrackableItem, today: Optional[date] = None) -> Item:
    return Item(
        id=item.id,
        type=item.item_type,
        name=item.name,
        expiry_date=item.expiry_date,
        status=expiry_status_for(item.expiry_date, today or today_local()),
        notes=item.notes,
        photo_url=item.photo_url,
        created_at=item.created_at,
        updated_at=item.updated_at,
        category=item.category,
        storage_type=item.storage_type,
        quantity=item.quantity,
        document_type=item.document_type,
        custom_type=item.custom_type,
        document_number=item.document_number,
        issued_date=item.issued_date,
    )


class ItemService:
    def __init__(self, db: Session, queue, image_host=None):
        self.db = db
        self.scheduler = ReminderScheduler(db, queue)
        self.image_host = image_host

    def _schedule(self, item: TrackableItem, reschedule: bool = False) -> None:
        action = self.scheduler.reschedule_for_edited_item if reschedule else self.scheduler.schedule_for_new_item
        try:
            action(item.user_id, item.id, item.item_type, item.name, item.expiry_date)
        except ReminderSchedulingError as e:
            logger.error(f"[Items] Reminder scheduling failed for item={item.id}: {e}")

    def create(self, user_id: int, obj_in: Union[FoodItemCreate, DocumentCreate]) -> TrackableItem:
        if isinstance(obj_in, FoodItemCreate):
            item = crud.item.create_food(self.db, user_id=user_id, obj_in=obj_in)
        else:
            item = crud.item.create_document(self.db, user_id=user_id, obj_in=obj_in)
        logger.info(f"[Items] Created {item.item_type} item={item.id} for user={user_id}")
        self._schedule(item)
        return item

    def update(self, item: TrackableItem, obj_in: Union[FoodItemUpdate, DocumentUpdate]) -> TrackableItem:
        previous_expiry = item.expiry_date
        item = crud.item.update(self.db, db_obj=item, obj_in=obj_in)
        if item.expiry_date != previous_expiry:
            logger.info(f"[Items] Expiry of item={item.id} moved {previous_expiry} -> {item.expiry_date}")
            self._schedule(item, reschedule=True)
        return item

    def delete(self, item: TrackableItem) -> None:
        try:
            self.scheduler.cancel_all_for_item(item.id)
        except ReminderSchedulingError as e:
            logger.error(f"[Items] Reminder cancellation failed for item={item.id}: {e}")
        if item.photo_public_id and self.image_host is not None:
            try:
                self.image_host.delete(item.photo_public_id)
            except ImageHostError as e:
                logger.error(f"[Items] Photo cleanup failed for item={item.id}: {e}")
        crud.item.remove(self.db, db_obj=item)
        logger.info(f"[Items] Deleted item={item.id}")

    def set_photo(self, item: TrackableItem, data: bytes, content_type: Optional[str]) -> TrackableItem:
        uploaded = self.image_host.upload(data, folder=f"items/{item.user_id}", content_type=content_type)
        old_public_id = item.photo_public_id
        item = crud.item.set_photo(self.db, db_obj=item, url=uploaded["url"], public_id=uploaded["public_id"])
        if old_public_id:
            try:
                self.image_host.delete(old_public_id)
            except ImageHostError as e:
                logger.error(f"[Items] Could not delete replaced photo {old_public_id}: {e}")
        return item

    def remove_photo(self, item: TrackableItem) -> TrackableItem:
        if item.photo_public_id:
            self.image_host.delete(item.photo_public_id)
        return crud.item.set_photo(self.db, db_obj=item, url=None, public_id=None)

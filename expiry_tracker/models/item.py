"""
Trackable items: one table, two variants (FOOD | DOCUMENT).

The shared envelope lives on ``TrackableItem``; ``FoodItem`` and
``DocumentItem`` add their type-specific columns through single-table
inheritance keyed on ``item_type``.
"""
from datetime import datetime, date, timedelta
from enum import Enum
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from expiry_tracker.db.base import Base

EXPIRING_SOON_DAYS = 7


class ItemType(str, Enum):
    FOOD = "FOOD"
    DOCUMENT = "DOCUMENT"


class FoodCategory(str, Enum):
    DAIRY = "DAIRY"
    MEAT = "MEAT"
    SEAFOOD = "SEAFOOD"
    VEGETABLES = "VEGETABLES"
    FRUITS = "FRUITS"
    GRAINS = "GRAINS"
    BEVERAGES = "BEVERAGES"
    CONDIMENTS = "CONDIMENTS"
    FROZEN = "FROZEN"
    OTHER = "OTHER"


class StorageType(str, Enum):
    REFRIGERATOR = "REFRIGERATOR"
    FREEZER = "FREEZER"
    PANTRY = "PANTRY"
    COUNTER = "COUNTER"


class DocumentType(str, Enum):
    PASSPORT = "PASSPORT"
    VISA = "VISA"
    DRIVERS_LICENSE = "DRIVERS_LICENSE"
    ID_CARD = "ID_CARD"
    INSURANCE_POLICY = "INSURANCE_POLICY"
    MEMBERSHIP = "MEMBERSHIP"
    CUSTOM = "CUSTOM"


class ExpiryStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"


def expiry_status_for(expiry_date: date, today: date) -> ExpiryStatus:
    if expiry_date < today:
        return ExpiryStatus.EXPIRED
    if expiry_date <= today + timedelta(days=EXPIRING_SOON_DAYS):
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.ACTIVE


class TrackableItem(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type = Column(String(16), nullable=False)
    name = Column(String, nullable=False)
    expiry_date = Column(Date, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    photo_url = Column(String, nullable=True)
    photo_public_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Food payload
    category = Column(String, nullable=True)
    storage_type = Column(String, nullable=True)
    quantity = Column(String, nullable=True)

    # Document payload
    document_type = Column(String, nullable=True)
    custom_type = Column(String, nullable=True)
    document_number = Column(String, nullable=True)
    issued_date = Column(Date, nullable=True)

    user = relationship("User", back_populates="items")
    reminders = relationship("Reminder", back_populates="item")

    __mapper_args__ = {
        "polymorphic_on": item_type,
    }

    __table_args__ = (
        Index("ix_items_user_type_expiry", "user_id", "item_type", "expiry_date"),
        # Reminder job keys embed the item id, so ids must never be reused
        {"sqlite_autoincrement": True},
    )

    @property
    def type(self) -> str:
        return self.item_type


class FoodItem(TrackableItem):
    __mapper_args__ = {"polymorphic_identity": ItemType.FOOD.value}


class DocumentItem(TrackableItem):
    __mapper_args__ = {"polymorphic_identity": ItemType.DOCUMENT.value}


ITEM_CLASSES = {
    ItemType.FOOD.value: FoodItem,
    ItemType.DOCUMENT.value: DocumentItem,
}

from datetime import date, timedelta
from typing import List, Optional, Tuple
from sqlalchemy import asc, desc, func
from sqlalchemy.orm import Session

from expiry_tracker.models.item import (
    DocumentItem,
    FoodItem,
    ItemType,
    TrackableItem,
    EXPIRING_SOON_DAYS,
)
from expiry_tracker.schemas.item import (
    DocumentCreate,
    DocumentUpdate,
    FoodItemCreate,
    FoodItemUpdate,
    ItemQuery,
)

SORT_COLUMNS = {
    "expiry_date": TrackableItem.expiry_date,
    "created_at": TrackableItem.created_at,
    "name": TrackableItem.name,
}


class CRUDItem:
    def create_food(self, db: Session, *, user_id: int, obj_in: FoodItemCreate) -> FoodItem:
        data = obj_in.model_dump()
        db_obj = FoodItem(
            user_id=user_id,
            name=data["name"],
            expiry_date=data["expiry_date"],
            category=data["category"].value,
            storage_type=data["storage_type"].value,
            quantity=data.get("quantity"),
            notes=data.get("notes"),
            photo_url=data.get("photo_url"),
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def create_document(self, db: Session, *, user_id: int, obj_in: DocumentCreate) -> DocumentItem:
        data = obj_in.model_dump()
        db_obj = DocumentItem(
            user_id=user_id,
            name=data["name"],
            expiry_date=data["expiry_date"],
            document_type=data["document_type"].value,
            custom_type=data.get("custom_type"),
            document_number=data.get("document_number"),
            issued_date=data.get("issued_date"),
            notes=data.get("notes"),
            photo_url=data.get("photo_url"),
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get(self, db: Session, id: int, item_type: Optional[str] = None) -> Optional[TrackableItem]:
        query = db.query(TrackableItem).filter(TrackableItem.id == id)
        if item_type:
            query = query.filter(TrackableItem.item_type == item_type)
        return query.first()

    def list_for_user(self, db: Session, *, user_id: int, item_type: Optional[str] = None) -> List[TrackableItem]:
        query = db.query(TrackableItem).filter(TrackableItem.user_id == user_id)
        if item_type:
            query = query.filter(TrackableItem.item_type == item_type)
        return query.order_by(TrackableItem.expiry_date.asc()).all()

    def search(self, db: Session, *, user_id: int, params: ItemQuery) -> Tuple[List[TrackableItem], int]:
        query = db.query(TrackableItem).filter(TrackableItem.user_id == user_id)
        if params.type:
            query = query.filter(TrackableItem.item_type == params.type.value)
        if params.category:
            # Category matches the food category or the document type
            query = query.filter(
                (TrackableItem.category == params.category)
                | (TrackableItem.document_type == params.category)
            )
        if params.search:
            query = query.filter(TrackableItem.name.ilike(f"%{params.search}%"))
        if params.expiring_before:
            query = query.filter(TrackableItem.expiry_date <= params.expiring_before)
        if params.expiring_after:
            query = query.filter(TrackableItem.expiry_date >= params.expiring_after)

        total = query.count()
        order = asc if params.sort_order == "asc" else desc
        items = (
            query.order_by(order(SORT_COLUMNS[params.sort_by]), TrackableItem.id.asc())
            .offset((params.page - 1) * params.limit)
            .limit(params.limit)
            .all()
        )
        return items, total

    def update(self, db: Session, *, db_obj: TrackableItem, obj_in: FoodItemUpdate | DocumentUpdate) -> TrackableItem:
        update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if hasattr(value, "value"):
                value = value.value
            setattr(db_obj, field, value)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def set_photo(self, db: Session, *, db_obj: TrackableItem, url: Optional[str], public_id: Optional[str]) -> TrackableItem:
        db_obj.photo_url = url
        db_obj.photo_public_id = public_id
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def remove(self, db: Session, *, db_obj: TrackableItem) -> None:
        db.delete(db_obj)
        db.commit()

    def expiring(self, db: Session, *, user_id: int, today: date, days_ahead: int = EXPIRING_SOON_DAYS) -> List[TrackableItem]:
        return (
            db.query(TrackableItem)
            .filter(TrackableItem.user_id == user_id)
            .filter(TrackableItem.expiry_date >= today)
            .filter(TrackableItem.expiry_date <= today + timedelta(days=days_ahead))
            .order_by(TrackableItem.expiry_date.asc(), TrackableItem.id.asc())
            .all()
        )

    def stats(self, db: Session, *, user_id: int, today: date) -> dict:
        soon = today + timedelta(days=EXPIRING_SOON_DAYS)

        def _count_by_type(*criteria) -> dict:
            rows = (
                db.query(TrackableItem.item_type, func.count(TrackableItem.id))
                .filter(TrackableItem.user_id == user_id, *criteria)
                .group_by(TrackableItem.item_type)
                .all()
            )
            counts = {ItemType.FOOD.value: 0, ItemType.DOCUMENT.value: 0}
            counts.update({k: v for k, v in rows})
            return counts

        totals = _count_by_type()
        expired = _count_by_type(TrackableItem.expiry_date < today)
        expiring = _count_by_type(TrackableItem.expiry_date >= today, TrackableItem.expiry_date <= soon)
        food, doc = ItemType.FOOD.value, ItemType.DOCUMENT.value
        return {
            "total": totals[food] + totals[doc],
            "total_food": totals[food],
            "total_documents": totals[doc],
            "expired": expired[food] + expired[doc],
            "expired_food": expired[food],
            "expired_documents": expired[doc],
            "expiring_soon": expiring[food] + expiring[doc],
            "expiring_food": expiring[food],
            "expiring_documents": expiring[doc],
        }


item = CRUDItem()

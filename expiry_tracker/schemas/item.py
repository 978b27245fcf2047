from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from expiry_tracker.models.item import (
    DocumentType,
    ExpiryStatus,
    FoodCategory,
    ItemType,
    StorageType,
)


class FoodItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: FoodCategory
    storage_type: StorageType
    expiry_date: date
    quantity: Optional[str] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None


class DocumentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    document_type: DocumentType
    expiry_date: date
    custom_type: Optional[str] = None
    document_number: Optional[str] = None
    issued_date: Optional[date] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None


class FoodItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[FoodCategory] = None
    storage_type: Optional[StorageType] = None
    expiry_date: Optional[date] = None
    quantity: Optional[str] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None

    @field_validator("name", "category", "storage_type", "expiry_date")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v


class DocumentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    document_type: Optional[DocumentType] = None
    expiry_date: Optional[date] = None
    custom_type: Optional[str] = None
    document_number: Optional[str] = None
    issued_date: Optional[date] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None

    @field_validator("name", "document_type", "expiry_date")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v


class ItemQuery(BaseModel):
    type: Optional[ItemType] = None
    category: Optional[str] = None
    search: Optional[str] = None
    expiring_before: Optional[date] = None
    expiring_after: Optional[date] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_by: Literal["expiry_date", "created_at", "name"] = "expiry_date"
    sort_order: Literal["asc", "desc"] = "asc"


class Item(BaseModel):
    """Shared envelope plus the payload of whichever variant the item is."""
    id: int
    type: ItemType
    name: str
    expiry_date: date
    status: ExpiryStatus
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # Food
    category: Optional[FoodCategory] = None
    storage_type: Optional[StorageType] = None
    quantity: Optional[str] = None

    # Document
    document_type: Optional[DocumentType] = None
    custom_type: Optional[str] = None
    document_number: Optional[str] = None
    issued_date: Optional[date] = None


class ItemPage(BaseModel):
    items: List[Item]
    total: int
    page: int
    limit: int
    total_pages: int


class ExpiringItems(BaseModel):
    items: List[Item]


class ItemStats(BaseModel):
    total: int
    total_food: int
    total_documents: int
    expired: int
    expired_food: int
    expired_documents: int
    expiring_soon: int
    expiring_food: int
    expiring_documents: int

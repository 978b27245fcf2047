import logging
import math
from typing import Annotated, Any, Union
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session
from expiry_tracker import crud
from expiry_tracker.api import deps
from expiry_tracker.core.config import settings
from expiry_tracker.core.exceptions import ImageHostError
from expiry_tracker.models.item import ItemType, TrackableItem
from expiry_tracker.models.user import User
from expiry_tracker.schemas.item import (
    DocumentCreate,
    DocumentUpdate,
    ExpiringItems,
    FoodItemCreate,
    FoodItemUpdate,
    Item,
    ItemPage,
    ItemQuery,
    ItemStats,
)
from expiry_tracker.schemas.user import MessageResponse
from expiry_tracker.services.image_host import ALLOWED_CONTENT_TYPES
from expiry_tracker.services.item_service import ItemService, to_item_schema
from expiry_tracker.utils.timezone import today_local

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_type(item_type: str) -> ItemType:
    try:
        return ItemType(item_type.upper())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown item type '{item_type}'")


def _get_owned_item(db: Session, item_type: ItemType, item_id: int, user: User) -> TrackableItem:
    item = crud.item.get(db, id=item_id, item_type=item_type.value)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    if item.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
    return item


def _service(db: Session, queue, image_host=None) -> ItemService:
    return ItemService(db, queue, image_host=image_host)


@router.post("/food", response_model=Item, status_code=status.HTTP_201_CREATED)
def create_food_item(
    *,
    db: Session = Depends(deps.get_db),
    item_in: FoodItemCreate,
    current_user: User = Depends(deps.get_current_active_user),
    queue=Depends(deps.get_job_queue),
) -> Any:
    item = _service(db, queue).create(current_user.id, item_in)
    return to_item_schema(item)


@router.post("/document", response_model=Item, status_code=status.HTTP_201_CREATED)
def create_document(
    *,
    db: Session = Depends(deps.get_db),
    item_in: DocumentCreate,
    current_user: User = Depends(deps.get_current_active_user),
    queue=Depends(deps.get_job_queue),
) -> Any:
    item = _service(db, queue).create(current_user.id, item_in)
    return to_item_schema(item)


@router.get("/", response_model=ItemPage)
def list_items(
    params: Annotated[ItemQuery, Query()],
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    List the caller's items, filtered and paginated.
    """
    items, total = crud.item.search(db, user_id=current_user.id, params=params)
    today = today_local()
    return {
        "items": [to_item_schema(i, today) for i in items],
        "total": total,
        "page": params.page,
        "limit": params.limit,
        "total_pages": math.ceil(total / params.limit) if total else 0,
    }


@router.get("/expiring", response_model=ExpiringItems)
def list_expiring_items(
    days: int = Query(default=7, ge=1, le=365),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    today = today_local()
    items = crud.item.expiring(db, user_id=current_user.id, today=today, days_ahead=days)
    return {"items": [to_item_schema(i, today) for i in items]}


@router.get("/stats", response_model=ItemStats)
def item_stats(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    return crud.item.stats(db, user_id=current_user.id, today=today_local())


@router.get("/{item_type}/{item_id}", response_model=Item)
def read_item(
    item_type: str,
    item_id: int,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    item = _get_owned_item(db, _parse_type(item_type), item_id, current_user)
    return to_item_schema(item)


def _update(db: Session, queue, item_type: ItemType, item_id: int, user: User, item_in: Union[FoodItemUpdate, DocumentUpdate]):
    item = _get_owned_item(db, item_type, item_id, user)
    item = _service(db, queue).update(item, item_in)
    return to_item_schema(item)


@router.patch("/food/{item_id}", response_model=Item)
def update_food_item(
    *,
    item_id: int,
    item_in: FoodItemUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
    queue=Depends(deps.get_job_queue),
) -> Any:
    return _update(db, queue, ItemType.FOOD, item_id, current_user, item_in)


@router.patch("/document/{item_id}", response_model=Item)
def update_document(
    *,
    item_id: int,
    item_in: DocumentUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
    queue=Depends(deps.get_job_queue),
) -> Any:
    return _update(db, queue, ItemType.DOCUMENT, item_id, current_user, item_in)


@router.delete("/{item_type}/{item_id}", response_model=MessageResponse)
def delete_item(
    item_type: str,
    item_id: int,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
    queue=Depends(deps.get_job_queue),
    image_host=Depends(deps.get_image_host),
) -> Any:
    item = _get_owned_item(db, _parse_type(item_type), item_id, current_user)
    _service(db, queue, image_host).delete(item)
    return {"message": "Item deleted"}


@router.post("/{item_type}/{item_id}/photo", response_model=Item)
def upload_item_photo(
    item_type: str,
    item_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
    queue=Depends(deps.get_job_queue),
    image_host=Depends(deps.get_image_host),
) -> Any:
    item = _get_owned_item(db, _parse_type(item_type), item_id, current_user)
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported image type: {file.content_type}")
    data = file.file.read()
    if len(data) > settings.UPLOAD_MAX_FILE_SIZE:
        raise HTTPException(status_code=413, detail="Image is too large")
    try:
        item = _service(db, queue, image_host).set_photo(item, data, file.content_type)
    except ImageHostError as e:
        logger.error(f"[Items] Photo upload failed for item={item_id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Image upload failed")
    return to_item_schema(item)


@router.delete("/{item_type}/{item_id}/photo", response_model=Item)
def delete_item_photo(
    item_type: str,
    item_id: int,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
    queue=Depends(deps.get_job_queue),
    image_host=Depends(deps.get_image_host),
) -> Any:
    item = _get_owned_item(db, _parse_type(item_type), item_id, current_user)
    try:
        item = _service(db, queue, image_host).remove_photo(item)
    except ImageHostError as e:
        logger.error(f"[Items] Photo delete failed for item={item_id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Image delete failed")
    return to_item_schema(item)

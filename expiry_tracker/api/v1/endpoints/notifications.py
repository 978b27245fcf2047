import logging
import math
from typing import Annotated, Any, List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from expiry_tracker import crud
from expiry_tracker.api import deps
from expiry_tracker.core.exceptions import DeliveryError
from expiry_tracker.models.user import User
from expiry_tracker.reminders import repository
from expiry_tracker.reminders.dispatcher import send_test_notification
from expiry_tracker.schemas.notifications import (
    FcmTokenRead,
    FcmTokenRegister,
    NotificationHistory,
    NotificationPreferences,
    NotificationPreferencesUpdate,
    NotificationQuery,
    PushResult,
)
from expiry_tracker.schemas.user import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/preferences", response_model=NotificationPreferences)
def get_preferences(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    return crud.notification_preference.get_or_create(db, user_id=current_user.id)


@router.patch("/preferences", response_model=NotificationPreferences)
def update_preferences(
    payload: NotificationPreferencesUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    # New intervals are picked up by the next reconciliation pass
    return crud.notification_preference.update(db, user_id=current_user.id, obj_in=payload)


@router.get("/history", response_model=NotificationHistory)
def notification_history(
    params: Annotated[NotificationQuery, Query()],
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    status_value = params.status.value if params.status else None
    reminders, total = repository.list_user_history(
        db, current_user.id, status=status_value, page=params.page, limit=params.limit
    )
    return {
        "notifications": [
            {
                "id": r.id,
                "item_id": r.item_id,
                "item_type": r.item_type,
                "item_name": r.item.name if r.item is not None else None,
                "offset_days": r.offset_days,
                "title": r.title,
                "body": r.body,
                "scheduled_for": r.scheduled_for,
                "status": r.status,
                "sent_at": r.sent_at,
                "error_message": r.error_message,
            }
            for r in reminders
        ],
        "total": total,
        "page": params.page,
        "limit": params.limit,
        "total_pages": math.ceil(total / params.limit) if total else 0,
    }


@router.get("/fcm-token", response_model=List[FcmTokenRead])
def list_fcm_tokens(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    return current_user.push_tokens


@router.post("/fcm-token", response_model=FcmTokenRead, status_code=status.HTTP_201_CREATED)
def register_fcm_token(
    payload: FcmTokenRegister,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    return crud.devices.register_fcm_token(
        db,
        user_id=current_user.id,
        token=payload.token,
        platform=payload.platform,
        device_id=payload.device_id,
    )


@router.delete("/fcm-token/{token}", response_model=MessageResponse)
def remove_fcm_token(
    token: str,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    fcm_token = crud.devices.get_fcm_token(db, token=token)
    if not fcm_token or fcm_token.user_id != current_user.id:
        raise HTTPException(status_code=404, detail="FCM token not found")
    crud.devices.remove_fcm_token(db, db_obj=fcm_token)
    return {"message": "FCM token removed"}


@router.post("/test", response_model=PushResult)
def send_test(
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_active_user),
    push=Depends(deps.get_push_provider),
):
    try:
        return send_test_notification(db, push, current_user.id)
    except DeliveryError as e:
        logger.error(f"[FCM] Test notification failed for user={current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Push delivery failed")

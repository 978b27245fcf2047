import logging
from typing import Any, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from expiry_tracker import crud
from expiry_tracker.api import deps
from expiry_tracker.core.exceptions import ReminderSchedulingError
from expiry_tracker.models.user import SubscriptionPlan, User
from expiry_tracker.reminders.reconciliation import reconcile_all_users
from expiry_tracker.schemas.admin import (
    AdminUserDetail,
    AdminUserList,
    BroadcastNotification,
    BroadcastResult,
    DashboardStats,
    QueueStats,
    ReconcileResult,
)
from expiry_tracker.services import admin_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/stats", response_model=DashboardStats)
def dashboard_stats(
    db: Session = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_active_admin),
) -> Any:
    return admin_service.dashboard_stats(db)


@router.get("/users", response_model=AdminUserList)
def list_users(
    status_filter: Optional[Literal["active", "inactive"]] = Query(default=None, alias="status"),
    plan: Optional[SubscriptionPlan] = None,
    search: Optional[str] = None,
    cursor: Optional[int] = None,
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_active_admin),
) -> Any:
    """
    Cursor-paginated user list, newest first.
    """
    return admin_service.list_users(
        db,
        status=status_filter,
        plan=plan.value if plan else None,
        search=search,
        cursor=cursor,
        limit=limit,
    )


@router.get("/users/{user_id}", response_model=AdminUserDetail)
def read_user(
    user_id: int,
    db: Session = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_active_admin),
) -> Any:
    user = crud.user.get(db, id=user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return admin_service.user_detail(db, user)


@router.post("/notifications/broadcast", response_model=BroadcastResult)
def broadcast_notification(
    payload: BroadcastNotification,
    db: Session = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_active_admin),
    queue=Depends(deps.get_job_queue),
) -> Any:
    logger.info(f"[Broadcast] Requested by admin={admin.id} audience={payload.target_audience.value}")
    try:
        return admin_service.broadcast(db, queue, payload)
    except ReminderSchedulingError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/queue/stats", response_model=QueueStats)
def queue_stats(
    db: Session = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_active_admin),
    queue=Depends(deps.get_job_queue),
) -> Any:
    try:
        return admin_service.queue_stats(db, queue)
    except Exception as e:
        logger.error(f"[Queue] Could not read queue stats: {e!r}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Queue is unavailable")


@router.post("/reminders/reconcile", response_model=ReconcileResult)
def run_reconciliation(
    db: Session = Depends(deps.get_db),
    admin: User = Depends(deps.get_current_active_admin),
    queue=Depends(deps.get_job_queue),
) -> Any:
    """
    Run one reconciliation pass now instead of waiting for the hourly job.
    """
    return reconcile_all_users(db, queue)

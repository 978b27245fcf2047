from fastapi import APIRouter

from expiry_tracker.api.v1.endpoints import auth
from expiry_tracker.api.v1.endpoints import items
from expiry_tracker.api.v1.endpoints import notifications
from expiry_tracker.api.v1.endpoints import admin

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(items.router, prefix="/items", tags=["items"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
# Admin panel (superusers only)
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])

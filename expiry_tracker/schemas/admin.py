from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class TargetAudience(str, Enum):
    ALL = "all"
    PREMIUM = "premium"
    FREE = "free"
    INACTIVE = "inactive"


class BroadcastNotification(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    body: str = Field(..., min_length=1, max_length=500)
    target_audience: TargetAudience
    schedule_for: Optional[datetime] = None


class BroadcastResult(BaseModel):
    message: str
    target_user_count: int
    broadcast_id: str


class UserStats(BaseModel):
    total: int
    active: int
    inactive: int
    premium: int
    premium_percentage: float


class ItemTotals(BaseModel):
    total: int
    food: int
    documents: int
    expired: int
    expiring_soon: int


class NotificationStats(BaseModel):
    sent_today: int
    sent_this_week: int
    delivery_rate: float
    failed_today: int


class GrowthStats(BaseModel):
    new_users_today: int
    new_users_this_week: int
    new_users_this_month: int


class DashboardStats(BaseModel):
    users: UserStats
    items: ItemTotals
    notifications: NotificationStats
    growth: GrowthStats


class AdminUserSummary(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_premium: bool
    is_active: bool
    item_count: int
    last_login_at: Optional[datetime] = None
    created_at: datetime


class Pagination(BaseModel):
    next_cursor: Optional[int] = None
    has_more: bool


class AdminUserList(BaseModel):
    users: List[AdminUserSummary]
    pagination: Pagination


class RecentItem(BaseModel):
    id: int
    name: str
    type: str
    expiry_date: date
    status: str


class SubscriptionInfo(BaseModel):
    plan: str
    status: str
    start_date: datetime
    end_date: Optional[datetime] = None


class AdminUserDetail(AdminUserSummary):
    food_item_count: int
    document_count: int
    notifications_sent: int
    subscription: Optional[SubscriptionInfo] = None
    recent_items: List[RecentItem]


class QueueStats(BaseModel):
    waiting: int
    active: int
    delayed: int
    completed: int
    failed: int
    total: int


class ReconcileResult(BaseModel):
    users: int
    items: int
    scheduled: int
    failures: int

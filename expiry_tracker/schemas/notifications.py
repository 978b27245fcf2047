from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from expiry_tracker.models.reminder import ReminderStatus

HHMM_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class NotificationPreferences(BaseModel):
    enabled: bool
    food_notifications_enabled: bool
    document_notifications_enabled: bool
    intervals: List[int]
    quiet_hours_enabled: bool
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    preferred_time: Optional[str] = None

    class Config:
        from_attributes = True


class NotificationPreferencesUpdate(BaseModel):
    enabled: Optional[bool] = None
    food_notifications_enabled: Optional[bool] = None
    document_notifications_enabled: Optional[bool] = None
    intervals: Optional[List[int]] = None
    quiet_hours_enabled: Optional[bool] = None
    quiet_hours_start: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    quiet_hours_end: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    preferred_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)

    @field_validator(
        "enabled",
        "food_notifications_enabled",
        "document_notifications_enabled",
        "quiet_hours_enabled",
    )
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not set to null")
        return v

    @field_validator("intervals")
    @classmethod
    def normalize_intervals(cls, v: Optional[List[int]]) -> List[int]:
        if v is None:
            raise ValueError("use an empty list to turn reminders off")
        if any(d <= 0 for d in v):
            raise ValueError("intervals must be positive numbers of days")
        # Duplicates and order carry no meaning
        return sorted(set(v), reverse=True)


class NotificationQuery(BaseModel):
    status: Optional[ReminderStatus] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class NotificationRecord(BaseModel):
    id: UUID
    item_id: Optional[int] = None
    item_type: Optional[str] = None
    item_name: Optional[str] = None
    offset_days: Optional[int] = None
    title: Optional[str] = None
    body: Optional[str] = None
    scheduled_for: datetime
    status: ReminderStatus
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None


class NotificationHistory(BaseModel):
    notifications: List[NotificationRecord]
    total: int
    page: int
    limit: int
    total_pages: int


class FcmTokenRegister(BaseModel):
    token: str = Field(..., min_length=1)
    platform: Literal["ios", "android"]
    device_id: Optional[str] = None


class FcmTokenRead(BaseModel):
    id: int
    token: str
    platform: str
    device_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PushResult(BaseModel):
    success: bool
    message: Optional[str] = None
    message_id: Optional[str] = None
    success_count: Optional[int] = None
    failure_count: Optional[int] = None

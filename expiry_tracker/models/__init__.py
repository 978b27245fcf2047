from .user import User, Subscription, SubscriptionPlan, SubscriptionStatus
from .notification_preference import NotificationPreference, DEFAULT_INTERVALS
from .item import (
    TrackableItem,
    FoodItem,
    DocumentItem,
    ItemType,
    FoodCategory,
    StorageType,
    DocumentType,
    ExpiryStatus,
)
from .reminder import Reminder, ReminderStatus, expiry_job_key
from .push_token import FcmToken

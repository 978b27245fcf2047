from .user import User, UserCreate, UserUpdate, Token, TokenPayload, AuthResponse
from .item import Item, ItemPage, ItemQuery, ItemStats
from .notifications import NotificationPreferences, NotificationPreferencesUpdate, NotificationHistory
from .admin import BroadcastNotification, BroadcastResult, DashboardStats

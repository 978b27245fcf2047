from .user import user
from .item import item
from .notification_preference import notification_preference
from . import devices

__all__ = ["user", "item", "notification_preference", "devices"]

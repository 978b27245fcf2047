from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from expiry_tracker.db.base import Base

DEFAULT_INTERVALS = [30, 15, 7, 1]


class NotificationPreference(Base):
    """Per-user reminder settings (1:1 with users, created lazily)."""
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    food_notifications_enabled = Column(Boolean, nullable=False, default=True)
    document_notifications_enabled = Column(Boolean, nullable=False, default=True)
    # Days before expiry; stored de-duplicated, largest first
    intervals = Column(JSON, nullable=False, default=lambda: list(DEFAULT_INTERVALS))
    quiet_hours_enabled = Column(Boolean, nullable=False, default=False)
    quiet_hours_start = Column(String(5), nullable=True)  # HH:MM
    quiet_hours_end = Column(String(5), nullable=True)  # HH:MM
    preferred_time = Column(String(5), nullable=True)  # HH:MM
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="preference")

    def notifications_enabled_for(self, item_type: str) -> bool:
        if not self.enabled:
            return False
        if item_type == "FOOD":
            return bool(self.food_notifications_enabled)
        return bool(self.document_notifications_enabled)

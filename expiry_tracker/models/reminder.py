from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Index, Uuid, text
from sqlalchemy.orm import relationship
import uuid

from expiry_tracker.db.base import Base


class ReminderStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = (ReminderStatus.SENT.value, ReminderStatus.FAILED.value, ReminderStatus.CANCELLED.value)

_LIVE_KEY_PREDICATE = text("status IN ('PENDING', 'SENT')")


def expiry_job_key(item_id: int, offset_days: int) -> str:
    """Deterministic queue key for one (item, offset) reminder."""
    return f"expiry-{item_id}-{offset_days}"


class Reminder(Base):
    """One scheduled-or-sent push for a (user, item, offset) triple, or one broadcast recipient."""
    __tablename__ = "reminders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Nullable: broadcast reminders have no item, and deleted items keep their history
    item_id = Column(Integer, ForeignKey("items.id", ondelete="SET NULL"), nullable=True, index=True)
    item_type = Column(String(16), nullable=True)
    offset_days = Column(Integer, nullable=True)
    job_key = Column(String, nullable=True, index=True)
    job_id = Column(String, nullable=True)
    title = Column(String, nullable=True)
    body = Column(String, nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=ReminderStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    external_id = Column(String, nullable=True, index=True)  # broadcast id
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="reminders")
    item = relationship("TrackableItem", back_populates="reminders")

    __table_args__ = (
        Index("ix_reminders_status_time", "status", "scheduled_for"),
        Index("ix_reminders_user_time", "user_id", "scheduled_for"),
        # At most one live reminder per (item, offset) and fire time
        Index(
            "uq_reminders_live_job_key",
            "job_key",
            "scheduled_for",
            unique=True,
            postgresql_where=_LIVE_KEY_PREDICATE,
            sqlite_where=_LIVE_KEY_PREDICATE,
        ),
    )

    @property
    def is_broadcast(self) -> bool:
        return self.item_id is None and self.external_id is not None

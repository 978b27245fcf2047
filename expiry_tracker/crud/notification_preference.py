from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from expiry_tracker.models.notification_preference import NotificationPreference, DEFAULT_INTERVALS
from expiry_tracker.schemas.notifications import NotificationPreferencesUpdate


class CRUDNotificationPreference:
    def get(self, db: Session, *, user_id: int) -> Optional[NotificationPreference]:
        return db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).first()

    def get_or_create(self, db: Session, *, user_id: int) -> NotificationPreference:
        """Return the user's preference, creating the defaults on first access."""
        pref = self.get(db, user_id=user_id)
        if pref:
            return pref
        pref = NotificationPreference(
            user_id=user_id,
            enabled=True,
            food_notifications_enabled=True,
            document_notifications_enabled=True,
            intervals=list(DEFAULT_INTERVALS),
            quiet_hours_enabled=False,
        )
        db.add(pref)
        try:
            db.commit()
        except IntegrityError:
            # Another request created it first
            db.rollback()
            return self.get(db, user_id=user_id)
        db.refresh(pref)
        return pref

    def update(self, db: Session, *, user_id: int, obj_in: NotificationPreferencesUpdate) -> NotificationPreference:
        pref = self.get_or_create(db, user_id=user_id)
        for field, value in obj_in.model_dump(exclude_unset=True).items():
            setattr(pref, field, value)
        db.add(pref)
        db.commit()
        db.refresh(pref)
        return pref


notification_preference = CRUDNotificationPreference()

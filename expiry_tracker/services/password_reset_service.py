import logging
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session

from expiry_tracker import crud
from expiry_tracker.core.config import settings
from expiry_tracker.core.security import generate_reset_token, hash_token
from expiry_tracker.models.user import User

logger = logging.getLogger(__name__)


class PasswordResetService:
    def __init__(self):
        self.token_expiry_minutes = settings.PASSWORD_RESET_TOKEN_EXPIRY_MINUTES

    def request_password_reset(self, db: Session, email: str) -> Optional[str]:
        """
        Issue a reset token for the account, if there is one.
        Returns the raw token (callers never expose it); None for unknown emails.
        """
        user = crud.user.get_by_email(db, email=email)
        if not user or not user.is_active:
            logger.info("[Auth] Password reset requested for unknown or inactive account")
            return None

        token = generate_reset_token()
        expires_at = datetime.utcnow() + timedelta(minutes=self.token_expiry_minutes)
        crud.user.set_password_reset(db, db_obj=user, token_hash=hash_token(token), expires_at=expires_at)

        if settings.is_development:
            logger.info(f"[Auth] Password reset link for user={user.id}: {settings.PASSWORD_RESET_BASE_URL}?token={token}")
        else:
            logger.info(f"[Auth] Password reset token issued for user={user.id}")
        return token

    def reset_password(self, db: Session, token: str, new_password: str) -> Optional[User]:
        user = crud.user.get_by_reset_token_hash(db, token_hash=hash_token(token), now=datetime.utcnow())
        if not user:
            return None
        crud.user.reset_password(db, db_obj=user, new_password=new_password)
        logger.info(f"[Auth] Password reset completed for user={user.id}")
        return user


password_reset_service = PasswordResetService()

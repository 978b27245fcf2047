from datetime import datetime
from typing import List, Optional, Sequence
from sqlalchemy.orm import Session

from expiry_tracker.models.push_token import FcmToken


def register_fcm_token(
    db: Session, *, user_id: int, token: str, platform: str, device_id: Optional[str] = None
) -> FcmToken:
    """Upsert a push destination; a token seen under another user moves to this one."""
    existing = db.query(FcmToken).filter(FcmToken.token == token).first()
    if existing:
        if existing.user_id != user_id or existing.platform != platform or existing.device_id != device_id:
            existing.user_id = user_id
            existing.platform = platform
            existing.device_id = device_id
            existing.updated_at = datetime.utcnow()
            db.add(existing)
            db.commit()
            db.refresh(existing)
        return existing
    fcm_token = FcmToken(user_id=user_id, token=token, platform=platform, device_id=device_id)
    db.add(fcm_token)
    db.commit()
    db.refresh(fcm_token)
    return fcm_token


def get_fcm_token(db: Session, *, token: str) -> Optional[FcmToken]:
    return db.query(FcmToken).filter(FcmToken.token == token).first()


def remove_fcm_token(db: Session, *, db_obj: FcmToken) -> None:
    db.delete(db_obj)
    db.commit()


def list_user_tokens(db: Session, *, user_id: int) -> List[str]:
    rows = (
        db.query(FcmToken.token)
        .filter(FcmToken.user_id == user_id)
        .order_by(FcmToken.created_at.desc())
        .all()
    )
    return [r[0] for r in rows]


def prune_tokens(db: Session, *, tokens: Sequence[str]) -> int:
    """Delete tokens the push provider reported as unregistered."""
    if not tokens:
        return 0
    deleted = (
        db.query(FcmToken)
        .filter(FcmToken.token.in_(list(tokens)))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted

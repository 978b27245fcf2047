from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from expiry_tracker.core.security import get_password_hash, verify_password
from expiry_tracker.models.user import User
from expiry_tracker.schemas.user import UserCreate, UserUpdate


class CRUDUser:
    def create(self, db: Session, *, obj_in: UserCreate) -> User:
        first_name = obj_in.first_name
        last_name = obj_in.last_name
        # Split a single "name" field when first/last were not given
        if obj_in.name and not first_name and not last_name:
            parts = obj_in.name.strip().split(" ")
            first_name = parts[0]
            last_name = " ".join(parts[1:]) or parts[0]

        db_obj = User(
            email=obj_in.email.lower(),
            hashed_password=get_password_hash(obj_in.password),
            first_name=first_name,
            last_name=last_name,
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get(self, db: Session, id: int) -> Optional[User]:
        return db.query(User).filter(User.id == id).first()

    def get_by_email(self, db: Session, *, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.lower()).first()

    def get_by_reset_token_hash(self, db: Session, *, token_hash: str, now: datetime) -> Optional[User]:
        return (
            db.query(User)
            .filter(User.password_reset_token_hash == token_hash)
            .filter(User.password_reset_expires_at >= now)
            .first()
        )

    def authenticate(self, db: Session, *, email: str, password: str) -> Optional[User]:
        user = self.get_by_email(db, email=email)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    def update(self, db: Session, *, db_obj: User, obj_in: UserUpdate) -> User:
        update_data = obj_in.model_dump(exclude_unset=True)
        if "password" in update_data:
            hashed_password = get_password_hash(update_data["password"])
            del update_data["password"]
            update_data["hashed_password"] = hashed_password

        for field, value in update_data.items():
            setattr(db_obj, field, value)

        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def update_last_login(self, db: Session, *, db_obj: User) -> User:
        db_obj.last_login_at = datetime.utcnow()
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def set_password_reset(self, db: Session, *, db_obj: User, token_hash: str, expires_at: datetime) -> None:
        db_obj.password_reset_token_hash = token_hash
        db_obj.password_reset_expires_at = expires_at
        db.add(db_obj)
        db.commit()

    def reset_password(self, db: Session, *, db_obj: User, new_password: str) -> None:
        db_obj.hashed_password = get_password_hash(new_password)
        db_obj.password_reset_token_hash = None
        db_obj.password_reset_expires_at = None
        db.add(db_obj)
        db.commit()

    def is_active(self, user: User) -> bool:
        return user.is_active

    def is_superuser(self, user: User) -> bool:
        return user.is_superuser


# Create instance that can be imported directly
user = CRUDUser()

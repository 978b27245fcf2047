import logging
from datetime import timedelta
from typing import Any
from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy.orm import Session
from expiry_tracker import crud
from expiry_tracker.api import deps
from expiry_tracker.core import security
from expiry_tracker.core.config import settings
from expiry_tracker.models.user import User
from expiry_tracker.schemas.user import (
    AuthResponse,
    ForgotPasswordRequest,
    LogoutRequest,
    MessageResponse,
    RefreshTokenRequest,
    ResetPasswordRequest,
    Token,
    TokenPayload,
    User as UserSchema,
    UserCreate,
    UserLogin,
)
from expiry_tracker.services.password_reset_service import password_reset_service

logger = logging.getLogger(__name__)

router = APIRouter()

RESET_REQUESTED_MESSAGE = "If this email exists, a password reset link has been sent."


def _issue_tokens(user: User) -> dict:
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    refresh_token_expires = timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES)
    return {
        "access_token": security.create_access_token(user.id, expires_delta=access_token_expires),
        "refresh_token": security.create_refresh_token(user.id, expires_delta=refresh_token_expires),
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(
    *,
    db: Session = Depends(deps.get_db),
    user_in: UserCreate,
) -> Any:
    """
    Create new user and sign them in.
    """
    user = crud.user.get_by_email(db, email=user_in.email)
    if user:
        raise HTTPException(
            status_code=400,
            detail="A user with this email already exists.",
        )
    user = crud.user.create(db, obj_in=user_in)
    user = crud.user.update_last_login(db, db_obj=user)
    logger.info(f"[Auth] New user signed up: id={user.id}")
    return {**_issue_tokens(user), "user": UserSchema.model_validate(user)}


@router.post("/login", response_model=AuthResponse)
def login(
    *,
    db: Session = Depends(deps.get_db),
    credentials: UserLogin,
) -> Any:
    user = crud.user.authenticate(db, email=credentials.email, password=credentials.password)
    if not user:
        raise HTTPException(status_code=400, detail="Incorrect email or password")
    if not crud.user.is_active(user):
        raise HTTPException(status_code=400, detail="Inactive user")
    user = crud.user.update_last_login(db, db_obj=user)
    return {**_issue_tokens(user), "user": UserSchema.model_validate(user)}


@router.post("/refresh", response_model=Token)
def refresh_token(
    *,
    db: Session = Depends(deps.get_db),
    body: RefreshTokenRequest,
) -> Any:
    """Refresh access token using a refresh token"""
    try:
        token_data = TokenPayload(**security.decode_refresh_token(body.refresh_token))
    except (JWTError, ValidationError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid refresh token")
    if token_data.type != "refresh" or token_data.sub is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token type")

    user = crud.user.get(db, id=token_data.sub)
    if not user or not crud.user.is_active(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid refresh token")
    return _issue_tokens(user)


@router.post("/logout", response_model=MessageResponse)
def logout(
    *,
    db: Session = Depends(deps.get_db),
    body: LogoutRequest,
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Stateless logout. When the app passes its FCM token, the device stops
    receiving reminders for this account.
    """
    if body.fcm_token:
        token = crud.devices.get_fcm_token(db, token=body.fcm_token)
        if token and token.user_id == current_user.id:
            crud.devices.remove_fcm_token(db, db_obj=token)
    return {"message": "Logged out successfully"}


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    *,
    db: Session = Depends(deps.get_db),
    body: ForgotPasswordRequest,
) -> Any:
    """
    Request password reset for a user.
    Always returns the same message (doesn't reveal if user exists).
    """
    password_reset_service.request_password_reset(db, body.email)
    return {"message": RESET_REQUESTED_MESSAGE}


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    *,
    db: Session = Depends(deps.get_db),
    body: ResetPasswordRequest,
) -> Any:
    user = password_reset_service.reset_password(db, body.token, body.new_password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token.",
        )
    return {"message": "Password has been reset successfully."}


@router.get("/me", response_model=UserSchema)
def read_me(
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    return current_user

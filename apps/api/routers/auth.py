"""
Authentication API endpoints.

Provides:
- User registration
- Login (JWT token generation)
- Current user profile
- Password reset (self-service; the reset link is logged, not emailed)

Registration and forgot-password report success whether or not the email is
known, so neither endpoint can be used to enumerate accounts.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from core.auth import get_current_user
from core.config import settings
from core.database import get_db
from core.exceptions import BadRequestError, UnauthorizedError
from core.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    create_password_reset_token,
    decode_password_reset_token,
    get_password_hash,
    verify_password,
)
from models import User
from schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 8
REGISTER_MESSAGE = "Registration received. If the email is available you can now log in."
FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


@router.post("/register", response_model=MessageResponse)
def register(
    user_data: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a new account.

    Always answers with the same message; an existing email is left untouched.
    """
    _check_password(user_data.password)
    email = _normalize_email(user_data.email)

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        logger.info("Registration attempted for an existing email")
        return {"success": True, "message": REGISTER_MESSAGE}

    user = User(
        email=email,
        password_hash=get_password_hash(user_data.password),
        display_name=user_data.display_name or email.split("@")[0],
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent registration of the same email
        db.rollback()
        return {"success": True, "message": REGISTER_MESSAGE}

    logger.info(f"User registered: {user.id}")
    return {"success": True, "message": REGISTER_MESSAGE}


@router.post("/login", response_model=TokenResponse)
def login(
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    """Authenticate and return a JWT access token."""
    email = _normalize_email(credentials.email)
    user = db.query(User).filter(User.email == email).first()

    if not user or not user.password_hash or not verify_password(credentials.password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")

    access_token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "user": user,
    }


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current authenticated user information."""
    return current_user


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db)
):
    """
    Request a password reset link.

    Always returns success to prevent email enumeration.
    """
    email = _normalize_email(request.email)
    user = db.query(User).filter(User.email == email).first()

    if user:
        reset_token = create_password_reset_token(str(user.id), user.email)
        reset_url = f"{settings.WEB_APP_BASE_URL}/auth/reset-password?token={reset_token}"
        logger.info(f"Password reset requested for user {user.id}")
        if settings.ENVIRONMENT != "production":
            logger.info(f"Reset URL (dev only): {reset_url}")
    else:
        logger.info("Password reset requested for unknown email")

    return {"success": True, "message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request: ResetPasswordRequest,
    db: Session = Depends(get_db)
):
    """Reset the password using a valid reset token."""
    _check_password(request.new_password)

    user_id = decode_password_reset_token(request.token)
    try:
        user_uuid = UUID(user_id) if user_id else None
    except ValueError:
        user_uuid = None
    if user_uuid is None:
        raise BadRequestError("Invalid or expired reset token. Please request a new password reset.")

    user = db.query(User).filter(User.id == user_uuid).first()
    if not user:
        raise BadRequestError("Invalid reset token")

    user.password_hash = get_password_hash(request.new_password)
    db.commit()

    logger.info(f"Password reset successful for user {user.id}")
    return {
        "success": True,
        "message": "Password has been reset. You can now log in with your new password.",
    }

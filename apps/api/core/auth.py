"""
Authentication dependencies.

`get_current_user` is the single entry point routers use to resolve the
caller. Every failure mode returns the same 401 so clients learn nothing
about which check failed.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from core.database import get_db
from core.exceptions import UnauthorizedError
from core.security import decode_access_token
from models import User

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def _resolve_user(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session,
) -> Optional[User]:
    if not credentials:
        return None

    payload = decode_access_token(credentials.credentials)
    if not payload or payload.get("purpose"):
        # Purpose-scoped tokens (password reset) are not session tokens
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    try:
        user_id_uuid = UUID(user_id)
    except ValueError:
        return None

    return db.query(User).filter(User.id == user_id_uuid).first()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get the current authenticated user from JWT token.

    Raises 401 if the token is missing, invalid, or the user no longer exists.
    """
    user = _resolve_user(credentials, db)
    if user is None:
        raise UnauthorizedError()
    return user
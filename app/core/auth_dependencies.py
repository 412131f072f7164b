from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from app.core.security import decode_token
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.database.models import User
from app.services.auth_service import auth_service
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# auto_error is off so a missing header reports through the same 401 path as a bad token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

# Extracts and validates JWT token to retrieve current authenticated user
async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> User:
    if not token:
        raise AuthenticationError("Not authorized, no token provided")

    payload = decode_token(token)
    if payload is None or not payload.get("sub"):
        logger.warning("Token validation failed")
        raise AuthenticationError("Not authorized, token failed")

    user = await auth_service.get_user_by_id(payload["sub"])
    if user is None:
        logger.debug("Token subject %s no longer exists", payload.get("sub"))
        raise AuthenticationError("User not found")

    return user

# Validates that the current user has admin privileges
async def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise AuthorizationError("Not authorized, admin access required")
    return current_user

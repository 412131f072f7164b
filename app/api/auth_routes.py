from fastapi import APIRouter, Depends, status
from typing import Dict, Any
import logging

from app.services.auth_service import auth_service
from app.schemas import UserCreate, UserLogin
from app.core.auth_dependencies import get_current_user
from app.core.exceptions import LoanAppError
from app.database.models import User
from app.helpers.response_builder import build_user_response
from app.services.audit_service import audit_service

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

logger = logging.getLogger(__name__)

# Registers a new user account and signs it in
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_user(user_data: UserCreate) -> Dict[str, Any]:
    try:
        created = await auth_service.register_user(user_data)
    except LoanAppError:
        await audit_service.record("register", actor=user_data.email, status="failed")
        raise
    await audit_service.record("register", actor=created["user"]["email"], acted=created["user"]["id"])
    return created

# Authenticates user credentials and returns an access token
@router.post("/login", status_code=status.HTTP_200_OK)
async def login_user(credentials: UserLogin) -> Dict[str, Any]:
    try:
        token_data = await auth_service.login_user(credentials)
    except LoanAppError:
        await audit_service.record("login", actor=credentials.email, status="failed")
        raise
    await audit_service.record("login", actor=credentials.email, acted=token_data["user"]["id"])
    return token_data

# Retrieves the authenticated user's profile information
@router.get("/me", status_code=status.HTTP_200_OK)
async def get_current_user_info(current_user: User = Depends(get_current_user)) -> Dict[str, Any]:
    return build_user_response(current_user)

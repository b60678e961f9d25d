"""
Auth API endpoints — login, me.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.core.dependencies import get_app_settings, get_current_user, get_token_service
from app.core.exceptions import ForbiddenException, UnauthenticatedException
from app.core.tokens import TokenService
from app.database import get_db
from app.models.user import User
from app.schemas.auth import AuthData, AuthResponse, LoginRequest, claims_for
from app.schemas.user import UserData, UserOut, UserResponse
from app.services import user_service

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenService = Depends(get_token_service),
):
    """Authenticate with email or username and receive a session token."""
    user = await user_service.find_by_email_or_username(db, payload.identifier)
    if user is None:
        matched = user_service.reject_unknown_identity(payload.password, settings.BCRYPT_ROUNDS)
    else:
        matched = user_service.compare_password(user, payload.password)
    if not matched:
        log.warning("Failed login for %r", payload.identifier)
        raise UnauthenticatedException("Invalid credentials")
    if not user.is_active:
        raise ForbiddenException("Account is deactivated")

    user = await user_service.record_login(db, user)
    return AuthResponse(
        data=AuthData(user=UserOut.model_validate(user), token=tokens.issue(claims_for(user))),
        message="Login successful",
    )


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    """Get the current authenticated user's profile."""
    return UserResponse(data=UserData(user=UserOut.model_validate(current_user)))

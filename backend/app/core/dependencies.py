"""
Access control dependencies — bearer token extraction, verification and
role checks.

Protected routes depend on ``get_current_claims`` (401 without a token,
403 with a bad one); optional-auth routes use ``get_optional_claims``, which
degrades any token problem to "no identity". ``require_roles`` gates a route
on the caller's role.
"""

import logging
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.core.exceptions import (
    ForbiddenException,
    InvalidTokenException,
    NotFoundException,
    UnauthenticatedException,
)
from app.core.tokens import TokenService
from app.database import get_db
from app.models.user import User
from app.schemas.auth import TokenClaims
from app.services import user_service

log = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


async def get_optional_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[TokenClaims]:
    """Claims of a valid bearer token, or None when absent or invalid."""
    request.state.claims = None
    if credentials is None:
        return None
    result = tokens.verify(credentials.credentials)
    if not result.ok:
        log.debug("Ignoring %s token on optional-auth route %s", result.error, request.url.path)
        return None
    request.state.claims = result.claims
    return result.claims


async def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """Require a valid bearer token and return its claims."""
    if credentials is None:
        raise UnauthenticatedException("No token provided")
    result = tokens.verify(credentials.credentials)
    if not result.ok:
        log.warning("Rejected %s token on %s", result.error, request.url.path)
        raise InvalidTokenException("Token verification failed")
    request.state.claims = result.claims
    return result.claims


async def get_current_user(
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Load the record behind a valid token; deleted or inactive users are refused."""
    try:
        user = await user_service.get_user(db, UUID(claims.id))
    except (ValueError, NotFoundException):
        raise InvalidTokenException("User for this token no longer exists")
    if not user.is_active:
        raise InvalidTokenException("Account is deactivated")
    return user


def has_role(claims: Optional[TokenClaims], allowed: set[str]) -> bool:
    """Case-sensitive membership test of the identity's role in ``allowed``."""
    return claims is not None and claims.role in allowed


def require_roles(*roles: str) -> Callable:
    """Dependency factory: the caller's role must be one of ``roles``."""
    allowed = set(roles)

    async def _check(claims: TokenClaims = Depends(get_current_claims)) -> TokenClaims:
        if not has_role(claims, allowed):
            raise ForbiddenException("Insufficient permissions")
        return claims

    return _check


require_admin = require_roles("admin")

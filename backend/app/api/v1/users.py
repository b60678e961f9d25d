"""
User management API endpoints.
"""

import math
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.core.dependencies import (
    get_app_settings,
    get_current_claims,
    get_optional_claims,
    get_token_service,
    has_role,
    require_admin,
    require_roles,
)
from app.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationFailedException,
    format_validation_errors,
)
from app.core.tokens import TokenService
from app.database import get_db
from app.models.user import USER_ROLES
from app.schemas.auth import AuthData, AuthResponse, TokenClaims, claims_for
from app.schemas.user import (
    MessageResponse,
    Pagination,
    UserCreate,
    UserData,
    UserListData,
    UserListResponse,
    UserOut,
    UserResponse,
    UserStats,
    UserStatsData,
    UserStatsResponse,
    UserUpdate,
)
from app.services import user_service

router = APIRouter()

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

# Fields only an admin may change through PUT
ADMIN_ONLY_FIELDS = {"role", "is_active"}


def _positive_int(raw: Optional[str], default: int) -> int:
    """Parse a query value, falling back to ``default`` unless it is an integer >= 1."""
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def _parse_id(user_id: str) -> UUID:
    # Malformed ids can never match a record
    try:
        return UUID(user_id)
    except ValueError:
        raise NotFoundException(user_service.USER_NOT_FOUND)


# ── Endpoints ────────────────────────────────────────────

@router.get("", response_model=UserListResponse)
async def list_users(
    page: Optional[str] = Query(default=None),
    limit: Optional[str] = Query(default=None),
    search: str = Query(default=""),
    role: str = Query(default=""),
    db: AsyncSession = Depends(get_db),
    _claims: TokenClaims = Depends(get_current_claims),
):
    """List users with text search, role filter and pagination."""
    current = _positive_int(page, DEFAULT_PAGE)
    per_page = min(_positive_int(limit, DEFAULT_LIMIT), MAX_LIMIT)
    search = search.strip()

    if role and role not in USER_ROLES:
        users, total = [], 0
    else:
        users, total = await user_service.list_users(
            db, search=search, role=role, page=current, limit=per_page
        )

    return UserListResponse(
        data=UserListData(
            users=[UserOut.model_validate(u) for u in users],
            pagination=Pagination(
                current=current,
                pages=math.ceil(total / per_page),
                total=total,
                limit=per_page,
            ),
        )
    )


@router.get("/stats", response_model=UserStatsResponse)
async def get_user_stats(
    db: AsyncSession = Depends(get_db),
    _claims: TokenClaims = Depends(require_roles("admin", "moderator")),
):
    """Aggregate user counts."""
    stats = await user_service.get_user_stats(db)
    return UserStatsResponse(data=UserStatsData(stats=UserStats(**stats)))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _claims: TokenClaims = Depends(get_current_claims),
):
    """Get a user by ID."""
    user = await user_service.get_user(db, _parse_id(user_id))
    return UserResponse(data=UserData(user=UserOut.model_validate(user)))


@router.post("", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    tokens: TokenService = Depends(get_token_service),
    claims: Optional[TokenClaims] = Depends(get_optional_claims),
):
    """Create a user and return it with a fresh session token.

    Anyone may register a plain ``user``; other roles need an admin token.
    """
    if payload.role != "user" and not has_role(claims, {"admin"}):
        raise ForbiddenException("Only administrators can assign elevated roles")

    user = await user_service.create_user(db, payload, rounds=settings.BCRYPT_ROUNDS)
    token = tokens.issue(claims_for(user))
    return AuthResponse(
        data=AuthData(user=UserOut.model_validate(user), token=token),
        message="User created successfully",
    )


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
    claims: TokenClaims = Depends(get_current_claims),
):
    """Update a user. Password, id and timestamps are never updated here."""
    target_id = _parse_id(user_id)
    changes = {k: v for k, v in body.items() if k not in user_service.PROTECTED_FIELDS}
    try:
        fields = UserUpdate.model_validate(changes).model_dump(exclude_unset=True)
    except ValidationError as exc:
        raise ValidationFailedException(format_validation_errors(exc.errors())) from exc

    is_admin = claims.role == "admin"
    if not is_admin and claims.id != str(target_id):
        raise ForbiddenException("You can only update your own account")
    if not is_admin and ADMIN_ONLY_FIELDS & fields.keys():
        raise ForbiddenException("Only administrators can change role or active status")

    user = await user_service.update_user(db, target_id, fields)
    return UserResponse(
        data=UserData(user=UserOut.model_validate(user)),
        message="User updated successfully",
    )


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _admin: TokenClaims = Depends(require_admin),
):
    """Delete a user permanently."""
    await user_service.delete_user(db, _parse_id(user_id))
    return MessageResponse(message="User deleted successfully")

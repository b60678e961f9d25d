"""
User store — persistence, password hashing and identity lookup.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    DuplicateIdentityException,
    InternalFailureException,
    NotFoundException,
    ValidationFailedException,
    format_validation_errors,
)
from app.core.security import (
    BCRYPT_ROUNDS,
    hash_password,
    verify_dummy_password,
    verify_password,
)
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate

log = logging.getLogger(__name__)

USER_NOT_FOUND = "No user found with the provided ID"

# Keys never applied by update_user, in either wire or column spelling
PROTECTED_FIELDS = frozenset({
    "id", "_id",
    "password", "passwordHash", "password_hash", "hashed_password", "hashedPassword",
    "createdAt", "created_at",
    "updatedAt", "updated_at",
})


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def _find_conflict(
    db: AsyncSession,
    username: Optional[str] = None,
    email: Optional[str] = None,
    exclude_id: Optional[UUID] = None,
) -> Optional[User]:
    conditions = []
    if username is not None:
        conditions.append(User.username == username)
    if email is not None:
        conditions.append(func.lower(User.email) == email.lower())
    if not conditions:
        return None
    stmt = select(User).where(or_(*conditions))
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    payload: UserCreate,
    rounds: int = BCRYPT_ROUNDS,
) -> User:
    """Create a user. Raises DuplicateIdentityException if username/email taken."""
    if await _find_conflict(db, username=payload.username, email=payload.email):
        raise DuplicateIdentityException()

    user = User(
        username=payload.username,
        email=payload.email.lower(),
        hashed_password=hash_password(payload.password, rounds=rounds),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same identity
        await db.rollback()
        raise DuplicateIdentityException()
    await db.refresh(user)
    log.info("Created user %s (%s) with role %s", user.username, user.id, user.role)
    return user


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundException(USER_NOT_FOUND)
    return user


async def find_by_email_or_username(db: AsyncSession, identifier: str) -> Optional[User]:
    """Look up a user by email (case-insensitive) or exact username."""
    identifier = identifier.strip()
    result = await db.execute(
        select(User).where(
            or_(User.email == identifier.lower(), User.username == identifier)
        ).limit(1)
    )
    return result.scalar_one_or_none()


def compare_password(user: User, candidate: str) -> bool:
    """True iff ``candidate`` matches the user's stored password."""
    try:
        return verify_password(candidate, user.hashed_password)
    except (ValueError, TypeError) as exc:
        log.error("Stored password hash for user %s is unusable: %s", user.id, exc)
        raise InternalFailureException("Password comparison failed") from exc


def reject_unknown_identity(candidate: str, rounds: int = BCRYPT_ROUNDS) -> bool:
    """Spend a password check's worth of bcrypt work when no user matched."""
    return verify_dummy_password(candidate, rounds)


async def update_user(
    db: AsyncSession,
    user_id: UUID,
    changes: Mapping[str, Any],
) -> User:
    """Apply a partial update.

    Protected fields are dropped; the remainder is validated as a whole and
    either every field is written or none is.
    """
    allowed = {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}
    try:
        update = UserUpdate.model_validate(allowed)
    except ValidationError as exc:
        raise ValidationFailedException(format_validation_errors(exc.errors())) from exc
    fields = update.model_dump(exclude_unset=True)

    user = await get_user(db, user_id)

    if "username" in fields or "email" in fields:
        conflict = await _find_conflict(
            db,
            username=fields.get("username"),
            email=fields.get("email"),
            exclude_id=user.id,
        )
        if conflict:
            raise DuplicateIdentityException()

    for key, value in fields.items():
        setattr(user, key, value)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateIdentityException()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: UUID) -> None:
    """Hard-delete a user."""
    user = await get_user(db, user_id)
    await db.delete(user)
    await db.commit()
    log.info("Deleted user %s (%s)", user.username, user_id)


async def record_login(db: AsyncSession, user: User) -> User:
    """Stamp ``last_login`` with the current time."""
    user.last_login = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)
    return user


async def list_users(
    db: AsyncSession,
    search: str = "",
    role: str = "",
    page: int = 1,
    limit: int = 10,
) -> tuple[list[User], int]:
    """Return one page of users (newest first) and the total match count."""
    conditions = []
    if search:
        pattern = f"%{_escape_like(search)}%"
        conditions.append(or_(
            User.username.ilike(pattern, escape="\\"),
            User.email.ilike(pattern, escape="\\"),
            User.first_name.ilike(pattern, escape="\\"),
            User.last_name.ilike(pattern, escape="\\"),
        ))
    if role:
        conditions.append(User.role == role)

    count_stmt = select(func.count()).select_from(User)
    page_stmt = select(User)
    if conditions:
        count_stmt = count_stmt.where(*conditions)
        page_stmt = page_stmt.where(*conditions)

    total = (await db.execute(count_stmt)).scalar_one()
    offset = (page - 1) * limit
    # Past the last page; also keeps huge offsets away from the driver
    if offset >= total:
        return [], total
    result = await db.execute(
        page_stmt
        .order_by(User.created_at.desc(), User.id)
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_user_stats(db: AsyncSession) -> dict[str, int]:
    """Aggregate counts, computed on every call."""
    total = (await db.execute(select(func.count()).select_from(User))).scalar_one()
    active = (await db.execute(
        select(func.count()).select_from(User).where(User.is_active.is_(True))
    )).scalar_one()
    admins = (await db.execute(
        select(func.count()).select_from(User).where(User.role == "admin")
    )).scalar_one()
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "admins": admins,
    }

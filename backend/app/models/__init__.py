"""
Import all models so Alembic and SQLAlchemy can discover them.
"""

from app.models.user import User, USER_ROLES

__all__ = [
    "User",
    "USER_ROLES",
]

"""
Pydantic schemas for auth endpoints and token claims.
"""

from pydantic import BaseModel, Field

from app.schemas.user import UserOut


class TokenClaims(BaseModel):
    """Identity carried inside a session token."""

    id: str
    username: str
    email: str
    role: str


class LoginRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=255, description="Email or username")
    password: str = Field(..., min_length=1, max_length=128)


class AuthData(BaseModel):
    user: UserOut
    token: str


class AuthResponse(BaseModel):
    success: bool = True
    data: AuthData
    message: str = ""


def claims_for(user) -> TokenClaims:
    """Public claims of a user record."""
    return TokenClaims(
        id=str(user.id),
        username=user.username,
        email=user.email,
        role=user.role,
    )

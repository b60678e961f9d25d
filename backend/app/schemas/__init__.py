from app.schemas.user import (
    UserCreate, UserUpdate, UserOut, Pagination, UserListResponse,
    UserResponse, UserStats, UserStatsResponse, MessageResponse,
)
from app.schemas.auth import TokenClaims, LoginRequest, AuthResponse

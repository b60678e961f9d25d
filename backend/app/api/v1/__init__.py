"""
API v1 router — aggregates all sub-routers.
"""

from fastapi import APIRouter, Request

from app.api.v1.auth import router as auth_router
from app.api.v1.users import router as users_router

router = APIRouter()


@router.get("/", tags=["meta"])
async def api_info(request: Request):
    """Describe the API and its top-level endpoints."""
    return {
        "message": "API is working!",
        "version": request.app.state.settings.APP_VERSION,
        "endpoints": {
            "health": "/health",
            "auth": "/api/v1/auth",
            "users": "/api/v1/users",
        },
    }


router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(users_router, prefix="/users", tags=["users"])

"""API Routes module"""
from fastapi import APIRouter

from .auth import router as auth_router
from .requests import router as requests_router
from .users import router as users_router
from .realtime import router as realtime_router

# Main API router
api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Auth"])
api_router.include_router(requests_router, prefix="/requests", tags=["Requests"])
api_router.include_router(users_router, prefix="/users", tags=["Users"])

__all__ = ["api_router", "realtime_router"]

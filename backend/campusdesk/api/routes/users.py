"""User Administration Routes"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from .schemas import ActionResponse, UserListResponse, UserResponse
from ..deps import get_admin_user_dep, get_coordinator, get_user_service
from ...domain.models import User
from ...services.user_service import UserService
from ...sync.coordinator import SyncCoordinator

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    q: Optional[str] = Query(None, description="Search in name and email"),
    admin: User = Depends(get_admin_user_dep),
    user_service: UserService = Depends(get_user_service)
):
    """All users, one per email"""
    users = user_service.list_users(search=q)
    return UserListResponse(items=[u.public_dict() for u in users], total=len(users))


@router.post("/{user_id}/verification", response_model=UserResponse)
async def toggle_verification(
    user_id: str,
    admin: User = Depends(get_admin_user_dep),
    user_service: UserService = Depends(get_user_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Flip a user's verified flag"""
    user = await user_service.toggle_verification(admin, user_id)
    return UserResponse(user=user.public_dict(), storage_warning=coordinator.consume_storage_alert())


@router.delete("/{user_id}", response_model=ActionResponse)
async def delete_user(
    user_id: str,
    admin: User = Depends(get_admin_user_dep),
    user_service: UserService = Depends(get_user_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    await user_service.delete_user(admin, user_id)
    return ActionResponse(message="User deleted", storage_warning=coordinator.consume_storage_alert())

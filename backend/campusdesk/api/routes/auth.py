"""Auth Routes - register, login, logout, session"""
from fastapi import APIRouter, Depends, status

from .schemas import ActionResponse, CredentialsRequest, SessionResponse, UserResponse
from ..deps import get_coordinator, get_user_service
from ...services.user_service import UserService
from ...sync.coordinator import SyncCoordinator

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: CredentialsRequest,
    user_service: UserService = Depends(get_user_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Create a Student account and sign it in"""
    user = await user_service.register(body.email, body.password)
    return UserResponse(user=user.public_dict(), storage_warning=coordinator.consume_storage_alert())


@router.post("/login", response_model=UserResponse)
async def login(
    body: CredentialsRequest,
    user_service: UserService = Depends(get_user_service)
):
    """Sign in with email and password"""
    user = user_service.login(body.email, body.password)
    return UserResponse(user=user.public_dict())


@router.post("/logout", response_model=ActionResponse)
async def logout(user_service: UserService = Depends(get_user_service)):
    user_service.logout()
    return ActionResponse(message="Signed out")


@router.get("/session", response_model=SessionResponse)
async def get_session(user_service: UserService = Depends(get_user_service)):
    """The resumed session user, if any"""
    user = user_service.current_user()
    return SessionResponse(user=user.public_dict() if user else None)

"""API Dependencies - Common dependencies for routes"""
from fastapi import Depends, Request

from ..domain.models import User
from ..services.request_service import RequestService
from ..services.user_service import UserService
from ..sync.coordinator import SyncCoordinator


def get_coordinator(request: Request) -> SyncCoordinator:
    return request.app.state.coordinator


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_request_service(request: Request) -> RequestService:
    return request.app.state.request_service


async def get_current_user_dep(
    user_service: UserService = Depends(get_user_service)
) -> User:
    """
    Current session user
    
    Raises:
        AuthenticationError: 401 if no valid session is stored
    """
    return user_service.require_user()


async def get_admin_user_dep(
    user_service: UserService = Depends(get_user_service)
) -> User:
    """
    Current session user, who must be an administrator
    
    Raises:
        AuthenticationError: 401 if no session
        PermissionDeniedError: 403 if not an admin
    """
    return user_service.require_admin()

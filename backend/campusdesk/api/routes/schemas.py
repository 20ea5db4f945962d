"""Request/response schemas for the API routes"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ...domain.enums import RequestCategory, RequestStatus, UserRole


# =============================================================================
# Auth
# =============================================================================

class CredentialsRequest(BaseModel):
    """Email + password, used for both register and login"""
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    user: Optional[Dict[str, Any]] = None


# =============================================================================
# Requests
# =============================================================================

class SubmitRequestRequest(BaseModel):
    """New service request plus the requester's profile details"""
    category: RequestCategory
    user_name: str
    user_role: UserRole = UserRole.STUDENT
    course: Optional[str] = None
    staff_position: Optional[str] = None
    title: str = ""
    description: str = ""
    location: str = ""
    images: List[str] = Field(default_factory=list, description="Encoded images")
    ai_analysis: Optional[str] = None


class UpdateStatusRequest(BaseModel):
    status: RequestStatus


class AddCommentRequest(BaseModel):
    text: str = ""
    image_url: Optional[str] = None


class ReactionRequest(BaseModel):
    target_id: str = Field(..., description="Request ID or comment ID")
    emoji: str = Field(..., min_length=1)


class RateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None


class AnalyzeRequest(BaseModel):
    description: str = Field(..., min_length=1)


class AnalyzeResponse(BaseModel):
    available: bool
    category: Optional[RequestCategory] = None
    summary: Optional[str] = None


class RequestResponse(BaseModel):
    """A request plus any pending local storage warning"""
    request: Dict[str, Any]
    storage_warning: Optional[str] = None


class RequestListResponse(BaseModel):
    items: List[Dict[str, Any]]
    total: int


class ActionResponse(BaseModel):
    success: bool = True
    message: str = ""
    storage_warning: Optional[str] = None


# =============================================================================
# Users
# =============================================================================

class UserListResponse(BaseModel):
    items: List[Dict[str, Any]]
    total: int


class UserResponse(BaseModel):
    user: Dict[str, Any]
    storage_warning: Optional[str] = None

"""Domain Models - Pydantic schemas for all entities"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, model_validator

from .enums import UserRole, RequestStatus, RequestCategory


# ============================================================================
# Requester Profile (role-tagged snapshot)
# ============================================================================

class StudentProfile(BaseModel):
    """Student requester - carries the enrolled course"""
    model_config = ConfigDict(extra="ignore")
    
    role: Literal["STUDENT"] = "STUDENT"
    course: Optional[str] = Field(None, description="Course/program, e.g. BSN")


class StaffProfile(BaseModel):
    """Staff requester - carries the staff position"""
    model_config = ConfigDict(extra="ignore")
    
    role: Literal["STAFF"] = "STAFF"
    position: Optional[str] = Field(None, description="Staff position, e.g. UTILITY")


class FacultyProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")
    
    role: Literal["FACULTY"] = "FACULTY"


class AdminProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")
    
    role: Literal["ADMIN"] = "ADMIN"


RequesterProfile = Annotated[
    Union[StudentProfile, StaffProfile, FacultyProfile, AdminProfile],
    Field(discriminator="role")
]


def build_profile(
    role: UserRole,
    course: Optional[str] = None,
    staff_position: Optional[str] = None
) -> Union[StudentProfile, StaffProfile, FacultyProfile, AdminProfile]:
    """Build the tagged profile variant for a role"""
    if role == UserRole.STUDENT:
        return StudentProfile(course=course or None)
    if role == UserRole.STAFF:
        return StaffProfile(position=staff_position or None)
    if role == UserRole.FACULTY:
        return FacultyProfile()
    return AdminProfile()


# ============================================================================
# Reactions & Comments
# ============================================================================

class Reaction(BaseModel):
    """Emoji reaction - at most one per user per target"""
    model_config = ConfigDict(extra="ignore")
    
    emoji: str = Field(..., min_length=1, description="Emoji glyph")
    user_id: str = Field(..., description="Reacting user ID")
    user_name: str = Field("", description="Reacting user display name")


class Comment(BaseModel):
    """Threaded comment, owned by exactly one service request"""
    model_config = ConfigDict(extra="ignore")
    
    id: str = Field(..., description="Comment ID")
    author: str = Field(..., description="Author display name at time of posting")
    role: UserRole = Field(..., description="Author role at time of posting")
    text: str = Field("", description="Comment body")
    image_url: Optional[str] = Field(None, description="Optional encoded image")
    timestamp: str = Field(..., description="ISO 8601 posting time")
    reactions: List[Reaction] = Field(default_factory=list)


# ============================================================================
# Service Request
# ============================================================================

class ServiceRequest(BaseModel):
    """Campus service request"""
    model_config = ConfigDict(extra="ignore")
    
    id: str = Field("", description="Globally unique, immutable request ID")
    user_id: str = Field(..., description="Owning user ID")
    user_name: str = Field(..., description="Owner display name at creation time")
    requester: RequesterProfile = Field(
        default_factory=StudentProfile,
        description="Owner role snapshot at creation time"
    )
    title: str = Field(..., description="Short title")
    description: str = Field("", description="Free-text description")
    category: RequestCategory = Field(RequestCategory.OTHER)
    location: str = Field("", description="Where the issue is")
    status: RequestStatus = Field(RequestStatus.PENDING)
    created_at: str = Field(..., description="ISO 8601 creation time")
    updated_at: str = Field(..., description="ISO 8601 last update time")
    images: List[str] = Field(default_factory=list, description="Encoded image blobs")
    image_url: Optional[str] = Field(None, description="Legacy single image, mirrors images[0]")
    rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = None
    comments: List[Comment] = Field(default_factory=list)
    ai_analysis: Optional[str] = Field(None, description="Short AI-generated summary")
    assigned_to: Optional[str] = Field(None, description="Department or staff name")
    reactions: List[Reaction] = Field(default_factory=list)
    archived: bool = Field(False, description="Soft-delete marker")
    
    @model_validator(mode="after")
    def _mirror_first_image(self) -> "ServiceRequest":
        if self.images:
            self.image_url = self.images[0]
        return self
    
    def find_comment(self, comment_id: str) -> Optional[Comment]:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        return None


# ============================================================================
# User
# ============================================================================

class User(BaseModel):
    """Application user"""
    model_config = ConfigDict(extra="ignore")
    
    id: str = Field("", description="Primary user ID")
    name: str = Field("", description="Display name")
    email: str = Field(..., description="Email, compared case-insensitively")
    role: UserRole = Field(UserRole.STUDENT)
    is_verified: bool = Field(False)
    password_hash: Optional[str] = Field(None, description="bcrypt hash, never plaintext")
    course: Optional[str] = Field(None, description="Course, for students")
    staff_position: Optional[str] = Field(None, description="Position, for staff")
    department: Optional[str] = None
    avatar_url: Optional[str] = None
    
    @property
    def email_key(self) -> str:
        """Normalized email for lookups and uniqueness checks"""
        return self.email.strip().lower()
    
    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
    
    @property
    def profile(self) -> Union[StudentProfile, StaffProfile, FacultyProfile, AdminProfile]:
        return build_profile(self.role, self.course, self.staff_position)
    
    def public_dict(self) -> Dict[str, Any]:
        """Serialize without the credential hash"""
        return self.model_dump(mode="json", exclude={"password_hash"})


# ============================================================================
# Dashboard
# ============================================================================

class DashboardStats(BaseModel):
    """Admin dashboard counters over active (non-archived) requests"""
    total_requests: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    rejected: int = 0
    avg_rating: float = 0.0
    review_count: int = 0

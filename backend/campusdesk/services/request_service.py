"""Request Service - service request workflows for requesters and admins"""
from typing import List, Optional

from .classifier_service import Classification, ClassifierService
from .user_service import UserService
from ..config.settings import settings
from ..domain.enums import RequestCategory, RequestStatus, UserRole
from ..domain.errors import (
    InvalidStateError, NotFoundError, PermissionDeniedError,
    RequestNotFoundError, ValidationError
)
from ..domain.models import Comment, DashboardStats, ServiceRequest, User, build_profile
from ..domain.reactions import toggle_request_reaction
from ..sync.coordinator import SyncCoordinator
from ..utils.idgen import generate_id
from ..utils.logger import get_logger
from ..utils.time import now_iso

logger = get_logger(__name__)

ACADEMIC_TITLE = "Academic Document Request"
ACADEMIC_LOCATION = "Registrar/Admin Office"


class RequestService:
    """Service for request operations"""
    
    def __init__(
        self,
        coordinator: SyncCoordinator,
        user_service: UserService,
        classifier: Optional[ClassifierService] = None
    ):
        self.coordinator = coordinator
        self.user_service = user_service
        self.classifier = classifier
    
    # =========================================================================
    # Submission
    # =========================================================================
    
    async def submit_request(
        self,
        actor: User,
        category: RequestCategory,
        user_name: str,
        user_role: UserRole,
        title: str = "",
        description: str = "",
        location: str = "",
        images: Optional[List[str]] = None,
        course: Optional[str] = None,
        staff_position: Optional[str] = None,
        ai_analysis: Optional[str] = None
    ) -> ServiceRequest:
        """
        Create a Pending request and complete the requester's profile.
        
        The requester's name/role/course/position are snapshotted onto the
        request and written back to the user record and the session.
        """
        images = [img for img in (images or []) if img]
        is_academic = category == RequestCategory.ACADEMIC_DOCS
        
        errors = []
        if not (user_name or "").strip():
            errors.append("Full Name is required.")
        if user_role == UserRole.ADMIN and not actor.is_admin:
            errors.append("The Admin role cannot be selected.")
        if user_role == UserRole.STUDENT and not course:
            errors.append("Course is required for Student role.")
        if user_role == UserRole.STAFF and not staff_position:
            errors.append("Staff Position is required for Staff role.")
        if is_academic:
            if not (description or "").strip():
                errors.append("Message/Description is required for academic requests.")
        else:
            if not (title or "").strip():
                errors.append("Issue Title is required.")
            if not (location or "").strip():
                errors.append("Location is required.")
            if not images:
                errors.append("At least one image attachment is required.")
        if len(images) > settings.max_request_images:
            errors.append(f"You can only upload a maximum of {settings.max_request_images} images.")
        if errors:
            raise ValidationError("Unable to submit request", details={"errors": errors})
        
        timestamp = now_iso()
        request = ServiceRequest(
            id=generate_id(),
            user_id=actor.id,
            user_name=user_name.strip(),
            requester=build_profile(user_role, course, staff_position),
            title=ACADEMIC_TITLE if is_academic else title.strip(),
            description=(description or "").strip() or "No description provided.",
            category=category,
            location=ACADEMIC_LOCATION if is_academic else location.strip(),
            status=RequestStatus.PENDING,
            created_at=timestamp,
            updated_at=timestamp,
            images=images,
            ai_analysis=ai_analysis or None,
        )
        
        await self.coordinator.save_request(request)
        await self.user_service.complete_profile(actor, user_name, user_role, course, staff_position)
        
        logger.info(
            f"Submitted request {request.id}",
            extra={"request_id": request.id, "user_id": actor.id, "action": "submit"}
        )
        return request
    
    def analyze(self, description: str) -> Optional[Classification]:
        """Suggested category and summary, or None when unavailable"""
        if self.classifier is None:
            return None
        return self.classifier.analyze(description)
    
    # =========================================================================
    # Queries
    # =========================================================================
    
    def get_request(self, actor: User, request_id: str) -> ServiceRequest:
        request = self._get_or_raise(request_id)
        self._check_participant(actor, request)
        return request
    
    def list_user_requests(self, actor: User) -> List[ServiceRequest]:
        """The actor's own non-archived requests, newest first"""
        return [
            r for r in self.coordinator.list_requests()
            if r.user_id == actor.id and not r.archived
        ]
    
    def list_active_requests(
        self,
        status: Optional[RequestStatus] = None,
        search: Optional[str] = None
    ) -> List[ServiceRequest]:
        requests = [r for r in self.coordinator.list_requests() if not r.archived]
        if status is not None:
            requests = [r for r in requests if r.status == status]
        return self._search(requests, search)
    
    def list_archived_requests(self, search: Optional[str] = None) -> List[ServiceRequest]:
        return self._search([r for r in self.coordinator.list_requests() if r.archived], search)
    
    def dashboard_stats(self) -> DashboardStats:
        active = [r for r in self.coordinator.list_requests() if not r.archived]
        rated = [r for r in active if r.rating]
        avg_rating = sum(r.rating for r in rated) / len(rated) if rated else 0.0
        return DashboardStats(
            total_requests=len(active),
            pending=sum(1 for r in active if r.status == RequestStatus.PENDING),
            in_progress=sum(1 for r in active if r.status == RequestStatus.IN_PROGRESS),
            completed=sum(1 for r in active if r.status == RequestStatus.COMPLETED),
            rejected=sum(1 for r in active if r.status == RequestStatus.REJECTED),
            avg_rating=round(avg_rating, 1),
            review_count=len(rated),
        )
    
    # =========================================================================
    # Mutations
    # =========================================================================
    
    async def update_status(self, actor: User, request_id: str, status: RequestStatus) -> ServiceRequest:
        """Set any status; transitions are deliberately unconstrained"""
        self._check_admin(actor)
        request = self._get_or_raise(request_id)
        updated = request.model_copy(update={"status": status, "updated_at": now_iso()})
        await self.coordinator.save_request(updated)
        logger.info(
            f"Request {request_id} status {request.status.value} -> {status.value}",
            extra={"request_id": request_id, "actor_email": actor.email, "status": status.value}
        )
        return updated
    
    async def add_comment(
        self,
        actor: User,
        request_id: str,
        text: str,
        image_url: Optional[str] = None
    ) -> ServiceRequest:
        request = self._get_or_raise(request_id)
        self._check_participant(actor, request)
        if not (text or "").strip() and not image_url:
            raise ValidationError("A comment needs text or an image")
        
        comment = Comment(
            id=generate_id(),
            author=actor.name or "Anonymous",
            role=actor.role,
            text=(text or "").strip(),
            image_url=image_url or None,
            timestamp=now_iso(),
        )
        updated = request.model_copy(update={
            "comments": list(request.comments) + [comment],
            "updated_at": now_iso(),
        })
        await self.coordinator.save_request(updated)
        return updated
    
    async def toggle_reaction(
        self,
        actor: User,
        request_id: str,
        target_id: str,
        emoji: str
    ) -> ServiceRequest:
        """React on the request (target_id == request_id) or one of its comments"""
        if not emoji:
            raise ValidationError("An emoji is required")
        request = self._get_or_raise(request_id)
        self._check_participant(actor, request)
        
        updated = toggle_request_reaction(request, target_id, actor.id, actor.name, emoji)
        if updated is None:
            raise NotFoundError(
                f"Comment {target_id} not found on request {request_id}",
                details={"request_id": request_id, "target_id": target_id}
            )
        await self.coordinator.save_request(updated)
        return updated
    
    async def rate_request(
        self,
        actor: User,
        request_id: str,
        rating: int,
        feedback: Optional[str] = None
    ) -> ServiceRequest:
        """Owner rates a Completed request, once"""
        request = self._get_or_raise(request_id)
        if request.user_id != actor.id:
            raise PermissionDeniedError("Only the requester can rate this request")
        if request.status != RequestStatus.COMPLETED:
            raise InvalidStateError(
                "Only completed requests can be rated",
                details={"status": request.status.value}
            )
        if request.rating:
            raise InvalidStateError("This request has already been rated")
        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", details={"rating": rating})
        
        updated = request.model_copy(update={
            "rating": rating,
            "feedback": (feedback or "").strip() or None,
            "updated_at": now_iso(),
        })
        await self.coordinator.save_request(updated)
        return updated
    
    async def archive_request(self, actor: User, request_id: str) -> None:
        self._check_admin(actor)
        self._get_or_raise(request_id)
        await self.coordinator.delete_request(request_id)
    
    async def restore_request(self, actor: User, request_id: str) -> None:
        self._check_admin(actor)
        self._get_or_raise(request_id)
        await self.coordinator.restore_request(request_id)
    
    async def permanent_delete_request(self, actor: User, request_id: str) -> None:
        self._check_admin(actor)
        request = self._get_or_raise(request_id)
        if not request.archived:
            raise InvalidStateError("Archive the request before deleting it permanently")
        await self.coordinator.permanent_delete_request(request_id)
    
    # =========================================================================
    # Helpers
    # =========================================================================
    
    def _get_or_raise(self, request_id: str) -> ServiceRequest:
        request = self.coordinator.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(f"Request {request_id} not found", details={"request_id": request_id})
        return request
    
    @staticmethod
    def _check_admin(actor: User) -> None:
        if not actor.is_admin:
            raise PermissionDeniedError("Administrator access required", details={"user_id": actor.id})
    
    @staticmethod
    def _check_participant(actor: User, request: ServiceRequest) -> None:
        if actor.is_admin or request.user_id == actor.id:
            return
        raise PermissionDeniedError(
            "You do not have access to this request",
            details={"request_id": request.id}
        )
    
    @staticmethod
    def _search(requests: List[ServiceRequest], search: Optional[str]) -> List[ServiceRequest]:
        if not search:
            return requests
        term = search.strip().lower()
        return [
            r for r in requests
            if term in r.title.lower()
            or term in r.user_name.lower()
            or term in r.description.lower()
            or term in r.location.lower()
        ]

"""
Service Request Routes

Requester endpoints (submit, list own, comment, react, rate) and admin
endpoints (status, archive, restore, permanent delete, dashboard).
Static paths are declared before the /{request_id} routes.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from .schemas import (
    ActionResponse, AddCommentRequest, AnalyzeRequest, AnalyzeResponse,
    RateRequest, ReactionRequest, RequestListResponse, RequestResponse,
    SubmitRequestRequest, UpdateStatusRequest
)
from ..deps import (
    get_admin_user_dep, get_coordinator, get_current_user_dep,
    get_request_service, get_user_service
)
from ...domain.enums import RequestStatus
from ...domain.models import DashboardStats, ServiceRequest, User
from ...services.request_service import RequestService
from ...services.user_service import UserService
from ...sync.coordinator import SyncCoordinator

router = APIRouter()


def _to_response(request: ServiceRequest, coordinator: SyncCoordinator) -> RequestResponse:
    return RequestResponse(
        request=request.model_dump(mode="json"),
        storage_warning=coordinator.consume_storage_alert()
    )


# =============================================================================
# Collections
# =============================================================================

@router.get("", response_model=RequestListResponse)
async def list_requests(
    scope: str = Query("mine", description="mine, active (admin) or archived (admin)"),
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    q: Optional[str] = Query(None, description="Search in title, requester, description, location"),
    actor: User = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service),
    user_service: UserService = Depends(get_user_service)
):
    """
    List requests, newest first
    
    - mine: the caller's own non-archived requests
    - active: every non-archived request (admin)
    - archived: the archive (admin)
    """
    if scope == "mine":
        items = service.list_user_requests(actor)
    elif scope == "archived":
        user_service.require_admin()
        items = service.list_archived_requests(search=q)
    else:
        user_service.require_admin()
        items = service.list_active_requests(status=status_filter, search=q)
    return RequestListResponse(items=[r.model_dump(mode="json") for r in items], total=len(items))


@router.post("", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    body: SubmitRequestRequest,
    actor: User = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Submit a new request and complete the requester's profile"""
    request = await service.submit_request(
        actor=actor,
        category=body.category,
        user_name=body.user_name,
        user_role=body.user_role,
        title=body.title,
        description=body.description,
        location=body.location,
        images=body.images,
        course=body.course,
        staff_position=body.staff_position,
        ai_analysis=body.ai_analysis,
    )
    return _to_response(request, coordinator)


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    admin: User = Depends(get_admin_user_dep),
    service: RequestService = Depends(get_request_service)
):
    return service.dashboard_stats()


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_description(
    body: AnalyzeRequest,
    actor: User = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service)
):
    """AI-suggested category and summary; available=false when the classifier is off or fails"""
    result = service.analyze(body.description)
    if result is None:
        return AnalyzeResponse(available=False)
    return AnalyzeResponse(available=True, category=result.category, summary=result.summary)


# =============================================================================
# Single request
# =============================================================================

@router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: str,
    actor: User = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    return _to_response(service.get_request(actor, request_id), coordinator)


@router.put("/{request_id}/status", response_model=RequestResponse)
async def update_status(
    request_id: str,
    body: UpdateStatusRequest,
    admin: User = Depends(get_admin_user_dep),
    service: RequestService = Depends(get_request_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    request = await service.update_status(admin, request_id, body.status)
    return _to_response(request, coordinator)


@router.post("/{request_id}/comments", response_model=RequestResponse)
async def add_comment(
    request_id: str,
    body: AddCommentRequest,
    actor: User = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    request = await service.add_comment(actor, request_id, body.text, body.image_url)
    return _to_response(request, coordinator)


@router.post("/{request_id}/reactions", response_model=RequestResponse)
async def toggle_reaction(
    request_id: str,
    body: ReactionRequest,
    actor: User = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Add, replace or remove the caller's reaction on the request or a comment"""
    request = await service.toggle_reaction(actor, request_id, body.target_id, body.emoji)
    return _to_response(request, coordinator)


@router.post("/{request_id}/rating", response_model=RequestResponse)
async def rate_request(
    request_id: str,
    body: RateRequest,
    actor: User = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    request = await service.rate_request(actor, request_id, body.rating, body.feedback)
    return _to_response(request, coordinator)


@router.delete("/{request_id}", response_model=ActionResponse)
async def archive_request(
    request_id: str,
    admin: User = Depends(get_admin_user_dep),
    service: RequestService = Depends(get_request_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Soft delete - the request moves to the archive"""
    await service.archive_request(admin, request_id)
    return ActionResponse(message="Request archived", storage_warning=coordinator.consume_storage_alert())


@router.post("/{request_id}/restore", response_model=ActionResponse)
async def restore_request(
    request_id: str,
    admin: User = Depends(get_admin_user_dep),
    service: RequestService = Depends(get_request_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    await service.restore_request(admin, request_id)
    return ActionResponse(message="Request restored", storage_warning=coordinator.consume_storage_alert())


@router.delete("/{request_id}/permanent", response_model=ActionResponse)
async def permanent_delete_request(
    request_id: str,
    admin: User = Depends(get_admin_user_dep),
    service: RequestService = Depends(get_request_service),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Remove an archived request from both stores"""
    await service.permanent_delete_request(admin, request_id)
    return ActionResponse(message="Request deleted", storage_warning=coordinator.consume_storage_alert())

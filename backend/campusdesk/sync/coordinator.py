"""Sync Coordinator - public operations over the synchronized collections"""
from functools import partial
from typing import Callable, List, Optional

from .repository import ChangeCallback, SyncedRepository
from .seeding import build_default_admin, ensure_default_admin
from ..config.settings import settings
from ..domain.enums import CollectionName
from ..domain.errors import StorageError, StorageQuotaExceededError
from ..domain.models import ServiceRequest, User
from ..repositories.local_cache import LocalCacheStore
from ..repositories.remote_store import RemoteStore, Unsubscribe
from ..utils.logger import get_logger
from ..utils.time import timestamp_or_epoch

logger = get_logger(__name__)

StorageAlertListener = Callable[[str], None]


def _request_created_at(request: ServiceRequest):
    return timestamp_or_epoch(request.created_at)


class SyncCoordinator:
    """
    Entry point for reading and mutating requests and users.
    
    The local cache is written synchronously on every mutation; the remote
    store is mirrored afterwards and its failures are only logged. A local
    cache quota failure is kept as ``storage_alert`` for the UI.
    """
    
    def __init__(
        self,
        local: LocalCacheStore,
        remote: Optional[RemoteStore] = None,
        admin_email: Optional[str] = None,
        build_admin: Callable[[], User] = build_default_admin
    ):
        self.local = local
        self.remote = remote
        self.admin_email = (admin_email or settings.default_admin_email).strip().lower()
        self.storage_alert: Optional[str] = None
        self._storage_listeners: List[StorageAlertListener] = []
        self._subscriptions: List[Unsubscribe] = []
        
        self.requests: SyncedRepository[ServiceRequest] = SyncedRepository(
            CollectionName.REQUESTS.value,
            ServiceRequest,
            local,
            remote,
            remote_collection=settings.requests_collection,
            prepend_new=True,
            sort_key=_request_created_at,
            on_storage_error=self._on_storage_error
        )
        self.users: SyncedRepository[User] = SyncedRepository(
            CollectionName.USERS.value,
            User,
            local,
            remote,
            remote_collection=settings.users_collection,
            invariant=partial(ensure_default_admin, admin_email=self.admin_email, build_admin=build_admin),
            on_storage_error=self._on_storage_error
        )
    
    # =========================================================================
    # Lifecycle
    # =========================================================================
    
    async def start(self) -> None:
        """Open the long-lived subscriptions that keep the local cache current"""
        if self._subscriptions:
            return
        self._subscriptions.append(await self.subscribe_to_users(self._log_snapshot("users")))
        self._subscriptions.append(await self.subscribe_to_requests(self._log_snapshot("requests")))
        logger.info("Sync coordinator started", extra={"status": "remote" if self.remote else "local-only"})
    
    async def stop(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions.clear()
        logger.info("Sync coordinator stopped")
    
    @staticmethod
    def _log_snapshot(name: str) -> Callable[[list], None]:
        def on_change(items: list) -> None:
            logger.debug(f"{name} snapshot: {len(items)} item(s)", extra={"collection": name})
        return on_change
    
    # =========================================================================
    # Subscriptions
    # =========================================================================
    
    async def subscribe_to_requests(self, on_change: ChangeCallback) -> Unsubscribe:
        """Requests, newest first, now and on every change"""
        return await self.requests.subscribe(on_change)
    
    async def subscribe_to_users(self, on_change: ChangeCallback) -> Unsubscribe:
        """Users, always including the default administrator"""
        return await self.users.subscribe(on_change)
    
    # =========================================================================
    # Requests
    # =========================================================================
    
    def list_requests(self) -> List[ServiceRequest]:
        return self.requests.list_all()
    
    def get_request(self, request_id: str) -> Optional[ServiceRequest]:
        return self.requests.get(request_id)
    
    async def save_request(self, request: Optional[ServiceRequest]) -> None:
        await self.requests.save(request)
    
    async def delete_request(self, request_id: str) -> None:
        """Archive (soft delete)"""
        if await self.requests.patch(request_id, {"archived": True}):
            logger.info(f"Archived request {request_id}", extra={"request_id": request_id})
    
    async def restore_request(self, request_id: str) -> None:
        if await self.requests.patch(request_id, {"archived": False}):
            logger.info(f"Restored request {request_id}", extra={"request_id": request_id})
    
    async def permanent_delete_request(self, request_id: str) -> None:
        if not request_id:
            return
        await self.requests.remove(request_id)
        logger.info(f"Permanently deleted request {request_id}", extra={"request_id": request_id})
    
    # =========================================================================
    # Users
    # =========================================================================
    
    def list_users(self) -> List[User]:
        return self.users.list_all()
    
    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)
    
    def find_user_by_email(self, email: str) -> Optional[User]:
        key = (email or "").strip().lower()
        if not key:
            return None
        return next((u for u in self.list_users() if u.email_key == key), None)
    
    async def save_user(self, user: Optional[User]) -> None:
        await self.users.save(user)
    
    async def delete_user(self, user_id: str) -> None:
        """Remove a user. Callers must refuse to delete the acting user first."""
        if not user_id:
            return
        await self.users.remove(user_id)
        logger.info(f"Deleted user {user_id}", extra={"user_id": user_id})
    
    # =========================================================================
    # Storage alerts
    # =========================================================================
    
    def add_storage_listener(self, listener: StorageAlertListener) -> None:
        self._storage_listeners.append(listener)
    
    def consume_storage_alert(self) -> Optional[str]:
        """Return and clear the pending storage alert"""
        alert, self.storage_alert = self.storage_alert, None
        return alert
    
    def _on_storage_error(self, error: StorageError) -> None:
        if not isinstance(error, StorageQuotaExceededError):
            return
        self.storage_alert = error.message
        for listener in list(self._storage_listeners):
            listener(error.message)

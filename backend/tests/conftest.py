"""
Pytest Configuration and Fixtures

Environment overrides are applied before the application package is
imported, because settings are read once at import time.
"""

import os
import tempfile

os.environ.setdefault("LOGS_PATH", tempfile.mkdtemp(prefix="campusdesk-logs-"))
os.environ.setdefault("LOCAL_CACHE_PATH", tempfile.mkdtemp(prefix="campusdesk-cache-"))
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("REMOTE_BACKEND", "memory")
os.environ["AZURE_OPENAI_ENDPOINT"] = ""
os.environ["AZURE_OPENAI_API_KEY"] = ""

import pytest
import pytest_asyncio

from campusdesk.domain.enums import UserRole
from campusdesk.domain.models import User
from campusdesk.repositories.local_cache import LocalCacheStore
from campusdesk.repositories.remote_store import InMemoryRemoteStore
from campusdesk.services.request_service import RequestService
from campusdesk.services.user_service import UserService
from campusdesk.sync.coordinator import SyncCoordinator
from campusdesk.sync.session import SessionManager
from campusdesk.utils.security import hash_password

ADMIN_EMAIL = "admin@campusdesk.edu"


def make_request(request_id: str, created_at: str, **overrides) -> dict:
    """A valid stored request record"""
    record = {
        "id": request_id,
        "user_id": "u1",
        "user_name": "Ana Cruz",
        "requester": {"role": "STUDENT", "course": "BSN"},
        "title": f"Request {request_id}",
        "description": "Leaking faucet",
        "category": "Facilities",
        "location": "Room 101",
        "status": "Pending",
        "created_at": created_at,
        "updated_at": created_at,
        "images": ["data:image/png;base64,AAAA"],
        "comments": [],
        "reactions": [],
        "archived": False,
    }
    record.update(overrides)
    return record


def make_user(user_id: str, email: str, role: UserRole = UserRole.STUDENT, **overrides) -> User:
    data = {
        "id": user_id,
        "name": email.split("@")[0],
        "email": email,
        "role": role,
        "is_verified": role == UserRole.ADMIN,
        "password_hash": hash_password("secret1"),
    }
    data.update(overrides)
    return User(**data)


@pytest.fixture
def fast_admin():
    """Default admin builder without the bcrypt cost"""
    def build() -> User:
        return User(
            id="admin1",
            name="Campus Admin",
            email=ADMIN_EMAIL,
            role=UserRole.ADMIN,
            is_verified=True,
            password_hash="not-a-real-hash",
        )
    return build


@pytest.fixture
def local(tmp_path) -> LocalCacheStore:
    return LocalCacheStore(base_path=str(tmp_path / "cache"))


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest_asyncio.fixture
async def coordinator(local, remote):
    """Started coordinator with both subscriptions settled"""
    coord = SyncCoordinator(local, remote)
    await coord.start()
    await remote.drain()
    yield coord
    await coord.stop()
    await remote.close()


@pytest.fixture
def session(local) -> SessionManager:
    return SessionManager(local)


@pytest.fixture
def user_service(coordinator, session) -> UserService:
    return UserService(coordinator, session)


@pytest.fixture
def request_service(coordinator, user_service) -> RequestService:
    return RequestService(coordinator, user_service)


@pytest_asyncio.fixture
async def student(coordinator, remote) -> User:
    user = make_user("stu1", "ana@campus.edu", name="Ana Cruz", course="BSN")
    await coordinator.save_user(user)
    await remote.drain()
    return user


@pytest.fixture
def admin(coordinator) -> User:
    return coordinator.find_user_by_email(ADMIN_EMAIL)

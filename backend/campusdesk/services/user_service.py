"""User Service - registration, sign-in and user administration"""
from typing import List, Optional

from pydantic import EmailStr, TypeAdapter, ValidationError as PydanticValidationError

from ..config.settings import settings
from ..domain.enums import UserRole
from ..domain.errors import (
    AlreadyExistsError, AuthenticationError, PermissionDeniedError,
    UserNotFoundError, ValidationError
)
from ..domain.models import User
from ..sync.coordinator import SyncCoordinator
from ..sync.seeding import build_default_admin, is_admin_email
from ..sync.session import SessionManager
from ..utils.idgen import generate_id
from ..utils.logger import get_logger
from ..utils.security import hash_password, secrets_match, verify_password

logger = get_logger(__name__)

_email_adapter = TypeAdapter(EmailStr)

# bcrypt only looks at the first 72 bytes
_MAX_PASSWORD_BYTES = 72


class UserService:
    """Service for account operations"""
    
    def __init__(self, coordinator: SyncCoordinator, session: SessionManager):
        self.coordinator = coordinator
        self.session = session
    
    # =========================================================================
    # Session
    # =========================================================================
    
    def current_user(self) -> Optional[User]:
        return self.session.get_current_user()
    
    def require_user(self) -> User:
        """Current user or AuthenticationError"""
        user = self.session.get_current_user()
        if user is None:
            raise AuthenticationError("Sign in to continue")
        return user
    
    def require_admin(self) -> User:
        user = self.require_user()
        if not user.is_admin:
            raise PermissionDeniedError(
                "Administrator access required",
                details={"user_id": user.id}
            )
        return user
    
    async def register(self, email: str, password: str) -> User:
        """
        Create a Student account and sign it in.
        
        The display name defaults to the email local part; the account starts
        unverified.
        """
        clean_email = (email or "").strip().lower()
        
        if is_admin_email(clean_email, self.coordinator.admin_email):
            raise ValidationError(
                "This email is reserved for administrator access",
                details={"email": clean_email}
            )
        
        try:
            _email_adapter.validate_python(clean_email)
        except PydanticValidationError:
            raise ValidationError("Please enter a valid email address", details={"email": clean_email})
        
        password = password or ""
        if len(password) < settings.password_min_length:
            raise ValidationError(
                f"Password must be at least {settings.password_min_length} characters long"
            )
        if len(password.encode("utf-8")) > _MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {_MAX_PASSWORD_BYTES} bytes long")
        
        if self.coordinator.find_user_by_email(clean_email) is not None:
            raise AlreadyExistsError(
                "This email is already registered. Please log in instead.",
                details={"email": clean_email}
            )
        
        user = User(
            id=generate_id(),
            name=clean_email.split("@")[0],
            email=clean_email,
            role=UserRole.STUDENT,
            is_verified=False,
            password_hash=hash_password(password),
        )
        await self.coordinator.save_user(user)
        self.session.set_current_user(user)
        
        logger.info(f"Registered user {user.id}", extra={"user_id": user.id, "action": "register"})
        return user
    
    def login(self, email: str, password: str) -> User:
        """
        Sign in and start a session.
        
        The reserved administrator credentials always succeed, even when the
        user collection could not be loaded.
        """
        clean_email = (email or "").strip().lower()
        
        reserved = is_admin_email(clean_email, self.coordinator.admin_email)
        if reserved and secrets_match(password, settings.default_admin_password):
            admin = self.coordinator.find_user_by_email(clean_email) or build_default_admin()
            self.session.set_current_user(admin)
            logger.info("Administrator signed in", extra={"user_id": admin.id, "action": "login"})
            return admin
        
        user = self.coordinator.find_user_by_email(clean_email)
        if user is None:
            raise AuthenticationError(
                "Account does not exist. Please create an account to sign in.",
                error_code="ACCOUNT_NOT_FOUND"
            )
        if not verify_password(password or "", user.password_hash or ""):
            raise AuthenticationError(
                "Incorrect password. Please try again.",
                error_code="INVALID_PASSWORD"
            )
        
        self.session.set_current_user(user)
        logger.info(f"User {user.id} signed in", extra={"user_id": user.id, "action": "login"})
        return user
    
    def logout(self) -> None:
        self.session.set_current_user(None)
    
    # =========================================================================
    # Profile
    # =========================================================================
    
    async def complete_profile(
        self,
        user: User,
        name: str,
        role: UserRole,
        course: Optional[str] = None,
        staff_position: Optional[str] = None
    ) -> User:
        """Fill in name/role/course/position and refresh the session copy"""
        stored = self.coordinator.get_user(user.id) or user
        updated = stored.model_copy(update={
            "name": name.strip(),
            "role": role,
            "course": course if role == UserRole.STUDENT else stored.course,
            "staff_position": staff_position if role == UserRole.STAFF else stored.staff_position,
        })
        await self.coordinator.save_user(updated)
        self.session.set_current_user(updated)
        return updated
    
    # =========================================================================
    # Administration
    # =========================================================================
    
    def list_users(self, search: Optional[str] = None) -> List[User]:
        """Users de-duplicated by email (first wins), optionally filtered by name/email"""
        unique: dict = {}
        for user in self.coordinator.list_users():
            unique.setdefault(user.email_key, user)
        users = list(unique.values())
        
        if search:
            term = search.strip().lower()
            users = [u for u in users if term in u.name.lower() or term in u.email.lower()]
        return users
    
    async def toggle_verification(self, actor: User, user_id: str) -> User:
        if actor.id == user_id:
            raise PermissionDeniedError("You cannot change your own verification status")
        target = self._get_or_raise(user_id)
        updated = target.model_copy(update={"is_verified": not target.is_verified})
        await self.coordinator.save_user(updated)
        logger.info(
            f"User {user_id} verification set to {updated.is_verified}",
            extra={"user_id": user_id, "actor_email": actor.email, "action": "toggle_verification"}
        )
        return updated
    
    async def delete_user(self, actor: User, user_id: str) -> None:
        if actor.id == user_id:
            raise PermissionDeniedError("You cannot delete your own account")
        self._get_or_raise(user_id)
        await self.coordinator.delete_user(user_id)
    
    def _get_or_raise(self, user_id: str) -> User:
        user = self.coordinator.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found", details={"user_id": user_id})
        return user

"""User service tests - registration, sign-in, administration"""
import pytest

from campusdesk.config.settings import settings
from campusdesk.domain.enums import UserRole
from campusdesk.domain.errors import (
    AlreadyExistsError, AuthenticationError, PermissionDeniedError,
    UserNotFoundError, ValidationError
)

from .conftest import ADMIN_EMAIL


class TestRegister:
    
    @pytest.mark.asyncio
    async def test_register_creates_unverified_student_and_signs_in(self, user_service, coordinator, remote):
        user = await user_service.register("  Juan.Dela@Campus.edu ", "secret1")
        await remote.drain()
        
        assert user.email == "juan.dela@campus.edu"
        assert user.name == "juan.dela"
        assert user.role == UserRole.STUDENT
        assert user.is_verified is False
        assert user.password_hash and user.password_hash != "secret1"
        assert user_service.current_user().id == user.id
        assert coordinator.get_user(user.id) is not None
        assert user.id in remote.collection("users")
    
    @pytest.mark.asyncio
    async def test_reserved_admin_email_rejected(self, user_service):
        with pytest.raises(ValidationError):
            await user_service.register(ADMIN_EMAIL.upper(), "secret1")
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["", "not-an-email", "a@b"])
    async def test_invalid_email_rejected(self, user_service, email):
        with pytest.raises(ValidationError):
            await user_service.register(email, "secret1")
    
    @pytest.mark.asyncio
    async def test_short_password_rejected(self, user_service):
        with pytest.raises(ValidationError):
            await user_service.register("ben@campus.edu", "12345")
    
    @pytest.mark.asyncio
    async def test_duplicate_email_rejected_case_insensitively(self, user_service, student):
        with pytest.raises(AlreadyExistsError):
            await user_service.register("ANA@campus.edu", "secret1")


class TestLogin:
    
    @pytest.mark.asyncio
    async def test_login_with_correct_password(self, user_service, student):
        user = user_service.login("Ana@Campus.edu", "secret1")
        assert user.id == student.id
        assert user_service.current_user().id == student.id
    
    @pytest.mark.asyncio
    async def test_wrong_password(self, user_service, student):
        with pytest.raises(AuthenticationError) as exc_info:
            user_service.login("ana@campus.edu", "wrong-one")
        assert exc_info.value.error_code == "INVALID_PASSWORD"
        assert user_service.current_user() is None
    
    @pytest.mark.asyncio
    async def test_unknown_account(self, user_service):
        with pytest.raises(AuthenticationError) as exc_info:
            user_service.login("ghost@campus.edu", "secret1")
        assert exc_info.value.error_code == "ACCOUNT_NOT_FOUND"
    
    @pytest.mark.asyncio
    async def test_admin_credentials_always_accepted(self, user_service):
        user = user_service.login(ADMIN_EMAIL, settings.default_admin_password)
        assert user.is_admin
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize("password", ["", "wrong-one", settings.default_admin_password + "x"])
    async def test_admin_wrong_password_rejected(self, user_service, password):
        with pytest.raises(AuthenticationError) as exc_info:
            user_service.login(ADMIN_EMAIL, password)
        assert exc_info.value.error_code == "INVALID_PASSWORD"
        assert user_service.current_user() is None
    
    def test_admin_credentials_accepted_without_user_collection(self, local, session):
        from campusdesk.services.user_service import UserService
        from campusdesk.sync.coordinator import SyncCoordinator
        
        service = UserService(SyncCoordinator(local, None), session)
        
        user = service.login(ADMIN_EMAIL, settings.default_admin_password)
        
        assert user.is_admin
        assert session.get_current_user().email == ADMIN_EMAIL
    
    @pytest.mark.asyncio
    async def test_logout(self, user_service, student):
        user_service.login("ana@campus.edu", "secret1")
        user_service.logout()
        assert user_service.current_user() is None
        with pytest.raises(AuthenticationError):
            user_service.require_user()


class TestAdministration:
    
    @pytest.mark.asyncio
    async def test_require_admin(self, user_service, student):
        user_service.login("ana@campus.edu", "secret1")
        with pytest.raises(PermissionDeniedError):
            user_service.require_admin()
    
    @pytest.mark.asyncio
    async def test_toggle_verification(self, user_service, admin, student, remote):
        updated = await user_service.toggle_verification(admin, student.id)
        await remote.drain()
        assert updated.is_verified is True
        assert remote.collection("users")[student.id]["is_verified"] is True
        
        again = await user_service.toggle_verification(admin, student.id)
        assert again.is_verified is False
    
    @pytest.mark.asyncio
    async def test_admin_cannot_act_on_self(self, user_service, admin):
        with pytest.raises(PermissionDeniedError):
            await user_service.toggle_verification(admin, admin.id)
        with pytest.raises(PermissionDeniedError):
            await user_service.delete_user(admin, admin.id)
    
    @pytest.mark.asyncio
    async def test_delete_user(self, user_service, admin, student, remote, coordinator):
        await user_service.delete_user(admin, student.id)
        await remote.drain()
        assert coordinator.get_user(student.id) is None
        assert student.id not in remote.collection("users")
    
    @pytest.mark.asyncio
    async def test_delete_unknown_user(self, user_service, admin):
        with pytest.raises(UserNotFoundError):
            await user_service.delete_user(admin, "nobody")
    
    @pytest.mark.asyncio
    async def test_list_users_search(self, user_service, student):
        emails = [u.email for u in user_service.list_users()]
        assert sorted(emails) == sorted([ADMIN_EMAIL, "ana@campus.edu"])
        assert [u.email for u in user_service.list_users(search="ANA")] == ["ana@campus.edu"]
    
    @pytest.mark.asyncio
    async def test_complete_profile_updates_user_and_session(self, user_service, student, coordinator):
        updated = await user_service.complete_profile(student, "  Ana M. Cruz ", UserRole.STAFF, staff_position="UTILITY")
        
        assert updated.name == "Ana M. Cruz"
        assert updated.role == UserRole.STAFF
        assert updated.staff_position == "UTILITY"
        assert coordinator.get_user(student.id).role == UserRole.STAFF
        assert user_service.current_user().id == student.id

"""Session Manager - the current signed-in user, persisted in the local cache"""
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ..domain.errors import StorageError
from ..domain.models import User
from ..repositories.local_cache import LocalCacheStore
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SessionManager:
    """Process-wide session slot"""
    
    def __init__(self, local: LocalCacheStore):
        self.local = local
    
    def get_current_user(self) -> Optional[User]:
        """
        Resume the stored session user.
        
        A stored value that is malformed or lacks id/email is cleared and
        treated as no session.
        """
        raw = self.local.read_session()
        if raw is None:
            if self.local.session_present():
                self._clear()
            return None
        try:
            return User.model_validate(raw)
        except PydanticValidationError:
            logger.warning("Stored session user is invalid, clearing it")
            self._clear()
            return None
    
    def set_current_user(self, user: Optional[User]) -> None:
        """Store the user (without credentials), or clear the session"""
        try:
            self.local.write_session(user.public_dict() if user and user.id else None)
        except StorageError as e:
            logger.warning(f"Could not persist session: {e.message}")
    
    def _clear(self) -> None:
        try:
            self.local.write_session(None)
        except StorageError as e:
            logger.warning(f"Could not clear session: {e.message}")

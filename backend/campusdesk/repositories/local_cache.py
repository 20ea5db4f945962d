"""Local Cache Store - synchronous, durable, process-local key-value cache

Holds the two synchronized collections (requests, users) and the session
user, one JSON file per key. Reads never raise: missing, unreadable or
corrupt values come back as empty/absent. Writes replace the stored value
wholesale and report a full disk or an oversized value through
StorageQuotaExceededError, distinct from any other LocalStorageError.
"""
import errno
import json
import os
import tempfile
from typing import Any, Callable, Dict, List, Optional

from ..config.settings import settings
from ..domain.errors import LocalStorageError, StorageQuotaExceededError
from ..utils.logger import get_logger

logger = get_logger(__name__)

ChangeListener = Callable[[str], None]

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC), errno.EFBIG}


class LocalCacheStore:
    """File-backed cache for collections and the session slot"""
    
    def __init__(
        self,
        base_path: Optional[str] = None,
        max_bytes: Optional[int] = None,
        collection_keys: Optional[Dict[str, str]] = None,
        session_key: Optional[str] = None
    ):
        self.base_path = base_path or settings.local_cache_path
        self.max_bytes = max_bytes if max_bytes is not None else settings.local_cache_max_bytes
        self.collection_keys = collection_keys or {
            "requests": settings.requests_cache_key,
            "users": settings.users_cache_key,
        }
        self.session_key = session_key or settings.session_cache_key
        self._listeners: List[ChangeListener] = []
        os.makedirs(self.base_path, exist_ok=True)
    
    # =========================================================================
    # Collections
    # =========================================================================
    
    def read_collection(self, name: str) -> List[Dict[str, Any]]:
        """Return the stored list for a collection, or [] if absent or corrupt"""
        value = self._read_json(self._key_for(name))
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning(
                f"Cached collection '{name}' is not a list, ignoring it",
                extra={"collection": name}
            )
            return []
        return [item for item in value if isinstance(item, dict)]
    
    def write_collection(
        self,
        name: str,
        items: List[Dict[str, Any]],
        notify: bool = True
    ) -> None:
        """
        Replace the stored list for a collection.
        
        Raises:
            StorageQuotaExceededError: value too large or disk full
            LocalStorageError: any other write failure
        """
        self._write_json(self._key_for(name), list(items))
        if notify:
            self._publish(name)
    
    # =========================================================================
    # Session
    # =========================================================================
    
    def read_session(self) -> Optional[Dict[str, Any]]:
        """Return the stored session user, or None if missing, malformed or incomplete"""
        value = self._read_json(self.session_key)
        if not isinstance(value, dict):
            return None
        if not value.get("id") or not value.get("email"):
            logger.warning("Stored session is missing id or email, ignoring it")
            return None
        return value
    
    def session_present(self) -> bool:
        """Whether anything, valid or not, occupies the session slot"""
        return os.path.exists(self._path_for(self.session_key))

    def write_session(self, user: Optional[Dict[str, Any]]) -> None:
        """Store the session user, or clear it when user is None or has no id"""
        if user and user.get("id"):
            self._write_json(self.session_key, user)
        else:
            self._remove(self.session_key)
        self._publish("session")
    
    # =========================================================================
    # Change notifications
    # =========================================================================
    
    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a same-process change listener; returns a remover"""
        self._listeners.append(listener)
        
        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        
        return remove
    
    def _publish(self, name: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(name)
            except Exception as e:
                logger.error(f"Local change listener failed: {e}", exc_info=True, extra={"collection": name})
    
    # =========================================================================
    # File helpers
    # =========================================================================
    
    def _key_for(self, name: str) -> str:
        return self.collection_keys.get(name, name)
    
    def _path_for(self, key: str) -> str:
        return os.path.join(self.base_path, f"{key}.json")
    
    def _read_json(self, key: str) -> Any:
        path = self._path_for(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read cache key '{key}': {e}")
            return None
        
        if not raw.strip() or raw.strip() in ("undefined", "null"):
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Cache key '{key}' holds malformed JSON: {e}")
            return None
    
    def _write_json(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise LocalStorageError(
                f"Value for cache key '{key}' is not serializable",
                details={"key": key, "reason": str(e)}
            ) from e
        
        size = len(payload.encode("utf-8"))
        if self.max_bytes and size > self.max_bytes:
            raise StorageQuotaExceededError(
                "Storage limit reached. Reduce image sizes or delete old requests.",
                details={"key": key, "size_bytes": size, "max_bytes": self.max_bytes}
            )
        
        path = self._path_for(key)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.base_path, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
            tmp_path = None
        except OSError as e:
            if e.errno in _QUOTA_ERRNOS:
                raise StorageQuotaExceededError(
                    "Storage limit reached. Reduce image sizes or delete old requests.",
                    details={"key": key, "reason": str(e)}
                ) from e
            raise LocalStorageError(
                f"Failed to write cache key '{key}'",
                details={"key": key, "reason": str(e)}
            ) from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
    
    def _remove(self, key: str) -> None:
        try:
            os.remove(self._path_for(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise LocalStorageError(
                f"Failed to clear cache key '{key}'",
                details={"key": key, "reason": str(e)}
            ) from e

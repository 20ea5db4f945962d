"""Repository modules - local cache and remote replica stores"""
from .local_cache import LocalCacheStore
from .remote_store import RemoteStore, InMemoryRemoteStore, sanitize_document, sanitize_value

__all__ = [
    "LocalCacheStore",
    "RemoteStore",
    "InMemoryRemoteStore",
    "sanitize_document",
    "sanitize_value",
]

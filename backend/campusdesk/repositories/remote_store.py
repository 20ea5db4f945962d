"""Remote Replica Store - contract, payload sanitizing and in-memory store

The remote store is a shared, multi-writer document tree with two top-level
collections keyed by entity ID. Stored values omit the ``id`` field; it is
reattached from the key on read. Subscribers receive the full collection
(``{id: document}``) right away and again after every change by any client.
"""
import asyncio
import copy
import math
from abc import ABC, abstractmethod
from datetime import date, datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

from ..domain.errors import RemoteStoreError
from ..utils.logger import get_logger
from ..utils.time import format_iso

logger = get_logger(__name__)

Snapshot = Dict[str, Dict[str, Any]]
SnapshotHandler = Callable[[Snapshot], Awaitable[None]]
Unsubscribe = Callable[[], None]


def sanitize_value(value: Any) -> Any:
    """
    Recursively convert a value into something the remote store can persist.
    
    Absent markers and unsupported objects become None, enums their values,
    datetimes ISO strings, tuples/sets lists, and non-finite floats None.
    """
    if isinstance(value, Enum):
        return sanitize_value(value.value)
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, BaseModel):
        return sanitize_value(value.model_dump(mode="json"))
    if isinstance(value, datetime):
        return format_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): sanitize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize_value(item) for item in value]
    logger.debug(f"Dropping unsupported value of type {type(value).__name__}")
    return None


def sanitize_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize an entity payload for storage, dropping its id field"""
    cleaned = sanitize_value(document) or {}
    cleaned.pop("id", None)
    return cleaned


def attach_id(entity_id: str, value: Dict[str, Any]) -> Dict[str, Any]:
    """Rebuild an entity record from its key and stored value"""
    record = dict(value)
    record["id"] = entity_id
    return record


class RemoteStore(ABC):
    """Contract every remote replica store implements"""
    
    @abstractmethod
    async def subscribe(self, collection: str, on_snapshot: SnapshotHandler) -> Unsubscribe:
        """
        Deliver the current collection to on_snapshot, then keep delivering
        on every change. Returns an idempotent unsubscribe callable.
        """
    
    @abstractmethod
    async def put_entity(self, collection: str, entity_id: str, value: Dict[str, Any]) -> None:
        """Upsert a whole entity"""
    
    @abstractmethod
    async def patch_entity(self, collection: str, entity_id: str, fields: Dict[str, Any]) -> None:
        """Shallow-merge fields into an existing entity; unknown ids are left alone"""
    
    @abstractmethod
    async def delete_entity(self, collection: str, entity_id: str) -> None:
        """Hard-remove an entity"""
    
    async def close(self) -> None:
        """Release connections and background work"""


class InMemoryRemoteStore(RemoteStore):
    """
    Process-local realtime store.
    
    Writes apply immediately; change notifications are delivered on the event
    loop after the writing coroutine yields, coalesced per collection, the way
    a realtime database pushes snapshots to its listeners.
    """
    
    def __init__(self, initial: Optional[Dict[str, Snapshot]] = None):
        self._tree: Dict[str, Snapshot] = copy.deepcopy(initial) if initial else {}
        self._subscribers: Dict[str, Dict[int, SnapshotHandler]] = {}
        self._pending: Dict[str, asyncio.Task] = {}
        self._next_token = 0
        self.fail_writes = False
        self.write_log: List[tuple] = []
    
    def collection(self, name: str) -> Snapshot:
        """Current contents of a collection (copy)"""
        return copy.deepcopy(self._tree.get(name, {}))
    
    async def subscribe(self, collection: str, on_snapshot: SnapshotHandler) -> Unsubscribe:
        self._next_token += 1
        token = self._next_token
        self._subscribers.setdefault(collection, {})[token] = on_snapshot
        
        def unsubscribe() -> None:
            self._subscribers.get(collection, {}).pop(token, None)
        
        await on_snapshot(self.collection(collection))
        return unsubscribe
    
    async def put_entity(self, collection: str, entity_id: str, value: Dict[str, Any]) -> None:
        self._check_writable("put", collection, entity_id)
        self._tree.setdefault(collection, {})[entity_id] = sanitize_document(value)
        self._changed(collection)
    
    async def patch_entity(self, collection: str, entity_id: str, fields: Dict[str, Any]) -> None:
        self._check_writable("patch", collection, entity_id)
        node = self._tree.get(collection, {}).get(entity_id)
        if node is None:
            return
        node.update(sanitize_document(fields))
        self._changed(collection)
    
    async def delete_entity(self, collection: str, entity_id: str) -> None:
        self._check_writable("delete", collection, entity_id)
        self._tree.get(collection, {}).pop(entity_id, None)
        self._changed(collection)
    
    async def drain(self) -> None:
        """Wait until every scheduled snapshot delivery has run"""
        while self._pending:
            await asyncio.gather(*list(self._pending.values()))
    
    async def close(self) -> None:
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()
        self._subscribers.clear()
    
    def _check_writable(self, operation: str, collection: str, entity_id: str) -> None:
        self.write_log.append((operation, collection, entity_id))
        if self.fail_writes:
            raise RemoteStoreError(
                f"Remote {operation} rejected",
                details={"collection": collection, "entity_id": entity_id}
            )
    
    def _changed(self, collection: str) -> None:
        if collection in self._pending or not self._subscribers.get(collection):
            return
        self._pending[collection] = asyncio.get_running_loop().create_task(self._deliver(collection))
    
    async def _deliver(self, collection: str) -> None:
        try:
            await asyncio.sleep(0)
        finally:
            self._pending.pop(collection, None)
        snapshot = self.collection(collection)
        for handler in list(self._subscribers.get(collection, {}).values()):
            try:
                await handler(copy.deepcopy(snapshot))
            except Exception as e:
                logger.error(f"Snapshot handler failed: {e}", exc_info=True, extra={"collection": collection})

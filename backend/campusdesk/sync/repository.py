"""Synced Repository - one collection mirrored across local cache and remote store"""
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from .reconcile import Invariant, InvariantResult, ReconcileResult, Record, reconcile
from ..domain.errors import StorageError
from ..repositories.local_cache import LocalCacheStore
from ..repositories.remote_store import RemoteStore, Snapshot, Unsubscribe
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

ChangeCallback = Callable[[List[T]], None]
StorageErrorCallback = Callable[[StorageError], None]


class SyncedRepository(Generic[T]):
    """
    Write-through repository for one entity collection.
    
    Mutations write the local cache first (read-your-own-write, local change
    notification) and then mirror to the remote store; remote failures are
    logged and never raised. Subscriptions reconcile on their first snapshot
    and replace the local collection wholesale on every later one. A failed local
    write is never mirrored. The invariant only sees records that validate, and
    without a live remote subscription it also runs on local changes.
    """
    
    def __init__(
        self,
        name: str,
        model: Type[T],
        local: LocalCacheStore,
        remote: Optional[RemoteStore] = None,
        remote_collection: Optional[str] = None,
        prepend_new: bool = False,
        sort_key: Optional[Callable[[T], Any]] = None,
        invariant: Optional[Invariant] = None,
        on_storage_error: Optional[StorageErrorCallback] = None
    ):
        self.name = name
        self.model = model
        self.local = local
        self.remote = remote
        self.remote_collection = remote_collection or name
        self.prepend_new = prepend_new
        self.sort_key = sort_key
        self.invariant = invariant
        self._on_storage_error = on_storage_error
    
    # =========================================================================
    # Reads (local cache)
    # =========================================================================
    
    def list_all(self) -> List[T]:
        """All valid entities in the local cache, in delivery order"""
        return self._order(self._to_models(self.local.read_collection(self.name)))
    
    def get(self, entity_id: str) -> Optional[T]:
        if not entity_id:
            return None
        for record in self.local.read_collection(self.name):
            if record.get("id") == entity_id:
                models = self._to_models([record])
                return models[0] if models else None
        return None
    
    # =========================================================================
    # Mutations (local first, then remote)
    # =========================================================================
    
    async def save(self, entity: Optional[T]) -> None:
        """Upsert by id; new entities are prepended or appended. No-op without an id."""
        entity_id = getattr(entity, "id", None) if entity is not None else None
        if not entity_id:
            logger.debug(f"Ignoring save without id in '{self.name}'", extra={"collection": self.name})
            return
        
        record = entity.model_dump(mode="json")
        records = self.local.read_collection(self.name)
        index = next((i for i, r in enumerate(records) if r.get("id") == entity_id), None)
        if index is not None:
            records[index] = record
        elif self.prepend_new:
            records.insert(0, record)
        else:
            records.append(record)
        if not self._write_local(records):
            return
        
        await self._mirror("put", entity_id, record)
    
    async def patch(self, entity_id: str, fields: Dict[str, Any]) -> bool:
        """Shallow-merge fields into a cached entity and the remote copy; False if not cached"""
        if not entity_id:
            return False
        records = self.local.read_collection(self.name)
        target = next((r for r in records if r.get("id") == entity_id), None)
        if target is None:
            return False
        target.update(fields)
        if not self._write_local(records):
            return False
        
        await self._mirror("patch", entity_id, fields)
        return True
    
    async def remove(self, entity_id: str) -> None:
        """Physically remove an entity from both stores"""
        if not entity_id:
            return
        records = [r for r in self.local.read_collection(self.name) if r.get("id") != entity_id]
        if not self._write_local(records):
            return
        
        await self._mirror("delete", entity_id)
    
    # =========================================================================
    # Subscriptions
    # =========================================================================
    
    async def subscribe(self, on_change: ChangeCallback) -> Unsubscribe:
        """
        Deliver the collection now and on every change, local or remote.
        
        Returns an unsubscribe callable that is safe to call repeatedly.
        """
        state = {"first": True, "closed": False, "local_only": False}
        invariant = self._enforce if self.invariant is not None else None
        
        def deliver(models: List[T]) -> None:
            if state["closed"]:
                return
            try:
                on_change(models)
            except Exception as e:
                logger.error(f"Subscriber callback failed: {e}", exc_info=True, extra={"collection": self.name})
        
        def on_local_change(name: str) -> None:
            if name != self.name:
                return
            if state["local_only"] and invariant is not None:
                enforced = invariant(self.local.read_collection(self.name))
                if enforced.puts or enforced.deletes:
                    models = self._order(self._to_models(enforced.records))
                    self._write_local([m.model_dump(mode="json") for m in models], notify=False)
                    deliver(models)
                    return
            deliver(self.list_all())
        
        async def on_snapshot(snapshot: Snapshot) -> None:
            if state["closed"]:
                return
            first = state["first"]
            state["first"] = False
            result = reconcile(
                self.local.read_collection(self.name),
                snapshot,
                allow_seed=first,
                invariant=invariant
            )
            await self._apply(result, deliver)
        
        remove_local = self.local.add_listener(on_local_change)
        remote_unsubscribe: Optional[Unsubscribe] = None
        
        if self.remote is not None:
            try:
                remote_unsubscribe = await self.remote.subscribe(self.remote_collection, on_snapshot)
            except Exception as e:
                logger.error(
                    f"Remote subscription to '{self.remote_collection}' failed, serving local cache: {e}",
                    extra={"collection": self.name}
                )
                remote_unsubscribe = None
        
        if remote_unsubscribe is None:
            state["local_only"] = True
            if state["first"]:
                state["first"] = False
                result = reconcile(self.local.read_collection(self.name), None, invariant=invariant)
                await self._apply(result, deliver)
        
        def unsubscribe() -> None:
            if state["closed"]:
                return
            state["closed"] = True
            remove_local()
            if remote_unsubscribe is not None:
                remote_unsubscribe()
        
        return unsubscribe
    
    async def _apply(self, result: ReconcileResult, deliver: Callable[[List[T]], None]) -> None:
        models = self._order(self._to_models(result.records))
        self._write_local([m.model_dump(mode="json") for m in models], notify=False)
        deliver(models)
        
        if result.source == "local" and result.puts and self.remote is not None:
            logger.info(
                f"Writing {len(result.puts)} local record(s) to remote '{self.remote_collection}'",
                extra={"collection": self.name}
            )
        for record in result.puts:
            await self._mirror("put", record["id"], record)
        for entity_id in result.deletes:
            await self._mirror("delete", entity_id)
    
    # =========================================================================
    # Helpers
    # =========================================================================
    
    def _to_models(self, records: List[Record]) -> List[T]:
        models = []
        for record in records:
            try:
                models.append(self.model.model_validate(record))
            except PydanticValidationError as e:
                logger.warning(
                    f"Skipping malformed record {record.get('id')!r} in '{self.name}': {e.error_count()} error(s)",
                    extra={"collection": self.name}
                )
        return models
    
    def _order(self, models: List[T]) -> List[T]:
        if self.sort_key is None:
            return models
        return sorted(models, key=self.sort_key, reverse=True)
    
    def _enforce(self, records: List[Record]) -> InvariantResult:
        """Run the invariant over the records that validate; malformed ones count as absent"""
        valid = []
        for record in records:
            try:
                self.model.model_validate(record)
            except PydanticValidationError:
                continue
            valid.append(record)
        return self.invariant(valid)
    
    def _write_local(self, records: List[Record], notify: bool = True) -> bool:
        """Replace the local collection; False when the cache rejected the write"""
        try:
            self.local.write_collection(self.name, records, notify=notify)
        except StorageError as e:
            logger.warning(f"Local cache write failed: {e.message}", extra={"collection": self.name})
            if self._on_storage_error is not None:
                self._on_storage_error(e)
            return False
        return True
    
    async def _mirror(self, action: str, entity_id: str, payload: Optional[Dict[str, Any]] = None) -> None:
        if self.remote is None:
            return
        try:
            if action == "put":
                await self.remote.put_entity(self.remote_collection, entity_id, payload or {})
            elif action == "patch":
                await self.remote.patch_entity(self.remote_collection, entity_id, payload or {})
            elif action == "delete":
                await self.remote.delete_entity(self.remote_collection, entity_id)
        except Exception as e:
            logger.error(
                f"Remote {action} failed for {self.remote_collection}/{entity_id}: {e}",
                exc_info=True,
                extra={"collection": self.name, "entity_id": entity_id, "action": action}
            )

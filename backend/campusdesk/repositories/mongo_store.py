"""MongoDB Remote Store - Motor-backed realtime replica

Each synchronized collection is a MongoDB collection whose documents use the
entity ID as ``_id``. Subscriptions deliver the full collection, then follow a
change stream; on servers without change streams (standalone mongod) they fall
back to an APScheduler polling job.
"""
import asyncio
from typing import Any, Dict, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import OperationFailure, PyMongoError

from .remote_store import RemoteStore, Snapshot, SnapshotHandler, Unsubscribe, sanitize_document
from ..config.settings import settings
from ..utils.idgen import generate_id
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global async client instance
_async_client: Optional[AsyncIOMotorClient] = None


def get_async_client() -> AsyncIOMotorClient:
    """Get or create async MongoDB client using Motor"""
    global _async_client
    if _async_client is None:
        logger.info(f"Creating async MongoDB client for: {settings.mongo_uri}")
        _async_client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
    return _async_client


def get_async_database() -> AsyncIOMotorDatabase:
    """Get the async application database"""
    return get_async_client()[settings.mongo_db]


def close_async_client() -> None:
    """Close the shared Motor client"""
    global _async_client
    if _async_client is not None:
        _async_client.close()
        _async_client = None
        logger.info("Async MongoDB connection closed")


async def async_health_check() -> Dict[str, Any]:
    """Check async MongoDB health"""
    try:
        await get_async_client().admin.command("ping")
        return {"status": "healthy", "database": settings.mongo_db, "connection": "ok"}
    except PyMongoError as e:
        logger.error(f"Async MongoDB health check failed: {e}")
        return {"status": "unhealthy", "database": settings.mongo_db, "error": str(e)}


class _Subscription:
    """Book-keeping for one collection listener"""
    
    def __init__(self, collection: str, on_snapshot: SnapshotHandler):
        self.subscription_id = generate_id()
        self.collection = collection
        self.on_snapshot = on_snapshot
        self.active = True
        self.watch_task: Optional[asyncio.Task] = None
        self.job_id: Optional[str] = None
        self.last_snapshot: Optional[Snapshot] = None


class MongoRemoteStore(RemoteStore):
    """Remote replica store on MongoDB"""
    
    def __init__(
        self,
        database: Optional[AsyncIOMotorDatabase] = None,
        use_change_streams: Optional[bool] = None,
        poll_interval_seconds: Optional[int] = None
    ):
        self._db = database if database is not None else get_async_database()
        self._use_change_streams = (
            settings.remote_use_change_streams if use_change_streams is None else use_change_streams
        )
        self._poll_interval = poll_interval_seconds or settings.remote_poll_interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._subscriptions: Dict[str, _Subscription] = {}
    
    # =========================================================================
    # Reads & subscriptions
    # =========================================================================
    
    async def load_collection(self, collection: str) -> Snapshot:
        """Read the full collection as {id: document}"""
        snapshot: Snapshot = {}
        async for doc in self._db[collection].find({}):
            entity_id = str(doc.pop("_id"))
            snapshot[entity_id] = doc
        return snapshot
    
    async def subscribe(self, collection: str, on_snapshot: SnapshotHandler) -> Unsubscribe:
        subscription = _Subscription(collection, on_snapshot)
        
        snapshot = await self.load_collection(collection)
        subscription.last_snapshot = snapshot
        await on_snapshot(snapshot)
        
        self._subscriptions[subscription.subscription_id] = subscription
        if self._use_change_streams:
            subscription.watch_task = asyncio.get_running_loop().create_task(self._watch(subscription))
        else:
            self._start_polling(subscription)
        
        def unsubscribe() -> None:
            self._cancel(subscription)
        
        return unsubscribe
    
    async def _watch(self, subscription: _Subscription) -> None:
        collection = subscription.collection
        try:
            async with self._db[collection].watch() as stream:
                async for _change in stream:
                    if not subscription.active:
                        break
                    await self._redeliver(subscription, force=True)
        except asyncio.CancelledError:
            raise
        except OperationFailure as e:
            logger.warning(
                f"Change streams unavailable for '{collection}' ({e}), polling instead",
                extra={"collection": collection}
            )
            self._start_polling(subscription)
        except PyMongoError as e:
            logger.error(
                f"Change stream for '{collection}' failed: {e}, polling instead",
                extra={"collection": collection}
            )
            self._start_polling(subscription)
    
    def _start_polling(self, subscription: _Subscription) -> None:
        if not subscription.active:
            return
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()
            self._scheduler.start()
        subscription.job_id = f"poll-{subscription.collection}-{subscription.subscription_id}"
        self._scheduler.add_job(
            self._redeliver,
            trigger=IntervalTrigger(seconds=self._poll_interval),
            args=[subscription],
            id=subscription.job_id,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        logger.info(
            f"Polling '{subscription.collection}' every {self._poll_interval}s",
            extra={"collection": subscription.collection}
        )
    
    async def _redeliver(self, subscription: _Subscription, force: bool = False) -> None:
        if not subscription.active:
            return
        try:
            snapshot = await self.load_collection(subscription.collection)
        except PyMongoError as e:
            logger.error(f"Failed to reload '{subscription.collection}': {e}")
            return
        if not force and snapshot == subscription.last_snapshot:
            return
        subscription.last_snapshot = snapshot
        try:
            await subscription.on_snapshot(snapshot)
        except Exception as e:
            logger.error(f"Snapshot handler failed: {e}", exc_info=True, extra={"collection": subscription.collection})
    
    def _cancel(self, subscription: _Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False
        self._subscriptions.pop(subscription.subscription_id, None)
        if subscription.watch_task is not None and not subscription.watch_task.done():
            subscription.watch_task.cancel()
        if subscription.job_id and self._scheduler is not None:
            try:
                self._scheduler.remove_job(subscription.job_id)
            except JobLookupError:
                pass
    
    # =========================================================================
    # Writes
    # =========================================================================
    
    async def put_entity(self, collection: str, entity_id: str, value: Dict[str, Any]) -> None:
        document = sanitize_document(value)
        await self._db[collection].replace_one({"_id": entity_id}, document, upsert=True)
    
    async def patch_entity(self, collection: str, entity_id: str, fields: Dict[str, Any]) -> None:
        updates = sanitize_document(fields)
        if not updates:
            return
        await self._db[collection].update_one({"_id": entity_id}, {"$set": updates})
    
    async def delete_entity(self, collection: str, entity_id: str) -> None:
        await self._db[collection].delete_one({"_id": entity_id})
    
    async def close(self) -> None:
        for subscription in list(self._subscriptions.values()):
            self._cancel(subscription)
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

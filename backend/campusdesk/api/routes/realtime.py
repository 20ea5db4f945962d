"""
Realtime Routes - push collection snapshots over WebSockets

Each connection subscribes to one synchronized collection and receives the
full current list on connect and again on every change, local or remote.
"""
import asyncio
from typing import List

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from ...domain.models import User
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _serialize(items: List[BaseModel]) -> list:
    return [
        item.public_dict() if isinstance(item, User) else item.model_dump(mode="json")
        for item in items
    ]


async def _stream(websocket: WebSocket, collection: str) -> None:
    coordinator = websocket.app.state.coordinator
    queue: asyncio.Queue = asyncio.Queue()
    
    def on_change(items: list) -> None:
        queue.put_nowait(_serialize(items))
    
    await websocket.accept()
    if collection == "users":
        unsubscribe = await coordinator.subscribe_to_users(on_change)
    else:
        unsubscribe = await coordinator.subscribe_to_requests(on_change)
    logger.info(f"Realtime client connected to {collection}", extra={"collection": collection})
    
    async def forward() -> None:
        while True:
            payload = await queue.get()
            await websocket.send_json({"collection": collection, "items": payload})
    
    sender = asyncio.get_running_loop().create_task(forward())
    try:
        # Inbound messages are ignored; receiving detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Realtime client disconnected from {collection}", extra={"collection": collection})
    finally:
        sender.cancel()
        unsubscribe()


@router.websocket("/ws/requests")
async def requests_feed(websocket: WebSocket):
    await _stream(websocket, "requests")


@router.websocket("/ws/users")
async def users_feed(websocket: WebSocket):
    await _stream(websocket, "users")

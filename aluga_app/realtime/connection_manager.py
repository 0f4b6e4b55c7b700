import logging
from uuid import UUID

from fastapi import WebSocket

from .change_feed import ChangeEvent, ChangeFeed, Subscription, change_feed

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Chat sockets grouped by conversation, fed from the change feed.

    Every socket remembers the message ids it has seen, so a message that
    shows up in the history and again as a live push is delivered once.
    """

    def __init__(self, feed: ChangeFeed = change_feed):
        self.feed = feed
        self.active_connections: dict[UUID, list[WebSocket]] = {}
        self.delivered: dict[WebSocket, set[str]] = {}
        self.subscriptions: dict[UUID, Subscription] = {}

    async def connect(self, conversation_id: UUID, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.setdefault(conversation_id, []).append(websocket)
        self.delivered[websocket] = set()

        if conversation_id not in self.subscriptions:
            room = str(conversation_id)

            async def push(event: ChangeEvent):
                await self.broadcast(conversation_id, event.row)

            self.subscriptions[conversation_id] = self.feed.subscribe(
                "chat_messages",
                push,
                predicate=lambda row: row.get("conversation_id") == room,
            )

    async def disconnect(self, conversation_id: UUID, websocket: WebSocket):
        connections = self.active_connections.get(conversation_id, [])
        if websocket in connections:
            connections.remove(websocket)
        self.delivered.pop(websocket, None)
        if not connections:
            self.active_connections.pop(conversation_id, None)
            subscription = self.subscriptions.pop(conversation_id, None)
            if subscription:
                subscription.unsubscribe()

    async def send(self, websocket: WebSocket, payload: dict) -> bool:
        seen = self.delivered.setdefault(websocket, set())
        message_id = str(payload.get("id"))
        if message_id in seen:
            return False
        seen.add(message_id)
        await websocket.send_json(payload)
        return True

    async def broadcast(self, conversation_id: UUID, payload: dict):
        for ws in list(self.active_connections.get(conversation_id, [])):
            try:
                await self.send(ws, payload)
            except RuntimeError:
                logger.info("Dropping closed socket on conversation %s", conversation_id)
                await self.disconnect(conversation_id, ws)

from uuid import UUID

from fastapi import HTTPException, WebSocket
from sqlalchemy.ext.asyncio import AsyncSession

from realtime.connection_manager import ConnectionManager
from services.chat_service import ChatService


class ChatSocketSession:
    def __init__(
        self,
        db: AsyncSession,
        current_user,
        manager: ConnectionManager,
    ):
        self.current_user = current_user
        self.manager = manager
        self.chat_service = ChatService(db)

    async def on_connect(self, websocket: WebSocket, conversation_id: UUID):
        convo = await self.chat_service.get_conversation_for(
            self.current_user, conversation_id
        )
        self.chat_service.ensure_unlocked(convo)

        await self.manager.connect(conversation_id, websocket)
        history = await self.chat_service.list_messages(
            self.current_user, conversation_id
        )
        for message in history:
            await self.manager.send(websocket, message.model_dump(mode="json"))
        return convo

    async def on_disconnect(self, conversation_id: UUID, websocket: WebSocket):
        await self.manager.disconnect(conversation_id, websocket)

    async def on_message(self, websocket: WebSocket, conversation_id: UUID, payload):
        text = payload.get("text") if isinstance(payload, dict) else None
        try:
            # delivered back to every socket, this one included, by the change feed
            await self.chat_service.send_message(
                self.current_user, conversation_id, text or ""
            )
        except HTTPException as e:
            await websocket.send_json({"error": e.detail})

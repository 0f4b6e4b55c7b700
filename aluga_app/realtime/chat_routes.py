import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from core.get_current_user import get_current_user_ws
from core.get_db import AsyncSessionLocal
from realtime.connection_manager import ConnectionManager

from .chat_socket_service import ChatSocketSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat Realtime"])
manager = ConnectionManager()


@router.websocket("/ws/chat/{conversation_id}")
async def chat_endpoint(websocket: WebSocket, conversation_id: UUID):
    async with AsyncSessionLocal() as db:
        current_user = await get_current_user_ws(websocket, db)
        if current_user is None:
            return

        session = ChatSocketSession(db, current_user, manager)
        try:
            await session.on_connect(websocket, conversation_id)
        except HTTPException as e:
            logger.info("Chat socket refused for %s: %s", current_user.id, e.detail)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        try:
            while True:
                data = await websocket.receive_json()
                await session.on_message(websocket, conversation_id, data)
        except WebSocketDisconnect:
            await session.on_disconnect(conversation_id, websocket)

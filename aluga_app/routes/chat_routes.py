import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import UserProfile
from schemas.schema import ChatConversationView, ChatMessageCreate, ChatMessageOut
from services.chat_service import ChatService

router = APIRouter(tags=["Booking Chat"])


@cbv(router)
class ChatRoutes:
    @router.post(
        "/bookings/{booking_id}/conversation", response_model=ChatConversationView
    )
    @safe_handler
    async def open_conversation(
        self,
        booking_id: uuid.UUID,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ChatService(db).open_for_booking(current_user, booking_id)

    @router.get("/conversations", response_model=list[ChatConversationView])
    @safe_handler
    async def my_conversations(
        self,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ChatService(db).list_conversations(current_user)

    @router.get("/conversations/{conversation_id}", response_model=ChatConversationView)
    @safe_handler
    async def get_conversation(
        self,
        conversation_id: uuid.UUID,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ChatService(db).get_conversation(current_user, conversation_id)

    @router.get(
        "/conversations/{conversation_id}/messages",
        response_model=list[ChatMessageOut],
    )
    @safe_handler
    async def list_messages(
        self,
        conversation_id: uuid.UUID,
        after: Optional[datetime] = None,
        limit: int = Query(100, ge=1, le=200),
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ChatService(db).list_messages(
            current_user, conversation_id, after=after, limit=limit
        )

    @router.post(
        "/conversations/{conversation_id}/messages",
        response_model=ChatMessageOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def send_message(
        self,
        conversation_id: uuid.UUID,
        data: ChatMessageCreate,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ChatService(db).send_message(current_user, conversation_id, data.text)

from datetime import datetime
from typing import List
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from core.date_helper import utcnow
from models.models import ChatConversation, ChatMessage


class ChatMessageRepo:
    def __init__(self, db):
        self.db = db

    async def create(
        self,
        conversation_id: UUID,
        sender_id: UUID | None,
        text: str,
        is_system: bool = False,
    ) -> ChatMessage:
        now = utcnow()
        message = ChatMessage(
            conversation_id=conversation_id,
            sender_id=sender_id,
            text=text,
            is_system=is_system,
            created_at=now,
        )
        self.db.add(message)
        try:
            await self.db.flush()
            await self.db.execute(
                update(ChatConversation)
                .where(ChatConversation.id == conversation_id)
                .values(last_message_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            await self.db.refresh(message)
            return message
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def list_messages(
        self,
        conversation_id: UUID,
        after: datetime | None = None,
        limit: int = 100,
    ) -> List[ChatMessage]:
        stmt = select(ChatMessage).where(ChatMessage.conversation_id == conversation_id)
        if after is not None:
            stmt = stmt.where(ChatMessage.created_at > after)
        result = await self.db.execute(
            stmt.order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc()).limit(limit)
        )
        return list(result.scalars().all())

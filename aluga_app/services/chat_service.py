import logging
import uuid
from datetime import datetime

from fastapi import HTTPException

from core.check_permission import CheckRolePermission
from core.mapper import ORMMapper
from models.enums import ConversationStatus
from models.models import ChatConversation, ChatMessage
from policy.chat_policy import MessageRejected, ensure_message_allowed, is_chat_unlocked
from realtime.change_feed import INSERT, UPDATE, change_feed
from repos.booking_repo import BookingRepo
from repos.chat_conversation_repo import ChatConversationRepo
from repos.chat_message_repo import ChatMessageRepo
from schemas.schema import ChatConversationOut, ChatConversationView, ChatMessageOut

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


class ChatService:
    def __init__(self, db):
        self.booking_repo: BookingRepo = BookingRepo(db)
        self.conversation_repo: ChatConversationRepo = ChatConversationRepo(db)
        self.message_repo: ChatMessageRepo = ChatMessageRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission()
        self.mapper: ORMMapper = ORMMapper()

    def view(self, convo: ChatConversation) -> ChatConversationView:
        return ChatConversationView(
            conversation=self.mapper.one(convo, ChatConversationOut),
            booking_status=convo.booking.status,
            unlocked=is_chat_unlocked(convo.booking.status, convo.status),
        )

    async def open_for_booking(self, current_user, booking_id: uuid.UUID) -> ChatConversationView:
        booking = await self.booking_repo.get_by_id(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        await self.permission.check_booking_party(current_user, booking)

        convo, created = await self.conversation_repo.get_or_create(booking)
        if created:
            await change_feed.emit("chat_conversations", INSERT, convo)
        return self.view(convo)

    async def get_conversation_for(
        self, current_user, conversation_id: uuid.UUID
    ) -> ChatConversation:
        convo = await self.conversation_repo.get_by_id(conversation_id)
        if not convo:
            raise HTTPException(status_code=404, detail="Conversation not found")
        await self.permission.check_booking_party(current_user, convo)
        return convo

    async def get_conversation(
        self, current_user, conversation_id: uuid.UUID
    ) -> ChatConversationView:
        return self.view(await self.get_conversation_for(current_user, conversation_id))

    async def list_conversations(self, current_user) -> list[ChatConversationView]:
        conversations = await self.conversation_repo.list_for_user(current_user.id)
        return [self.view(convo) for convo in conversations]

    async def list_messages(
        self,
        current_user,
        conversation_id: uuid.UUID,
        after: datetime | None = None,
        limit: int = 100,
    ) -> list[ChatMessageOut]:
        convo = await self.get_conversation_for(current_user, conversation_id)
        messages = await self.message_repo.list_messages(
            convo.id, after=after, limit=max(1, min(limit, MAX_PAGE_SIZE))
        )
        return self.mapper.many(messages, ChatMessageOut)

    @staticmethod
    def ensure_unlocked(convo: ChatConversation):
        if not is_chat_unlocked(convo.booking.status, convo.status):
            raise HTTPException(
                status_code=403,
                detail="Chat unlocks once the booking payment is confirmed.",
            )

    async def _post(
        self, convo: ChatConversation, sender_id, text: str, is_system: bool
    ) -> ChatMessage:
        message = await self.message_repo.create(
            conversation_id=convo.id,
            sender_id=sender_id,
            text=text,
            is_system=is_system,
        )
        await change_feed.emit("chat_messages", INSERT, message)
        return message

    async def send_message(
        self, current_user, conversation_id: uuid.UUID, text: str
    ) -> ChatMessageOut:
        convo = await self.get_conversation_for(current_user, conversation_id)
        self.ensure_unlocked(convo)
        try:
            ensure_message_allowed(text)
        except MessageRejected as e:
            raise HTTPException(status_code=400, detail=str(e))

        message = await self._post(convo, current_user.id, text, is_system=False)
        return self.mapper.one(message, ChatMessageOut)

    async def send_system_message(
        self, convo: ChatConversation, sender_id, text: str
    ) -> ChatMessageOut:
        self.ensure_unlocked(convo)
        message = await self._post(convo, sender_id, text.strip(), is_system=True)
        logger.info("System message posted to conversation %s", convo.id)
        return self.mapper.one(message, ChatMessageOut)

    async def set_status(
        self, convo: ChatConversation, status: ConversationStatus
    ) -> ChatConversationView:
        convo = await self.conversation_repo.set_status(convo, status)
        logger.info("Conversation %s is now %s", convo.id, status.value)
        await change_feed.emit("chat_conversations", UPDATE, convo)
        return self.view(convo)

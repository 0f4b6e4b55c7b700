from typing import List
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import ConversationStatus
from models.models import Booking, ChatConversation


class ChatConversationRepo:
    def __init__(self, db):
        self.db = db

    def _select(self):
        return select(ChatConversation).options(
            selectinload(ChatConversation.booking).selectinload(Booking.property)
        )

    async def get_by_id(self, conversation_id: UUID) -> ChatConversation | None:
        result = await self.db.execute(
            self._select()
            .where(ChatConversation.id == conversation_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_booking_id(self, booking_id: UUID) -> ChatConversation | None:
        result = await self.db.execute(
            self._select().where(ChatConversation.booking_id == booking_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, booking: Booking) -> tuple[ChatConversation, bool]:
        convo = await self.get_by_booking_id(booking.id)
        if convo:
            return convo, False

        convo = ChatConversation(
            booking_id=booking.id,
            property_id=booking.property_id,
            renter_id=booking.renter_id,
            owner_id=booking.owner_id,
            status=ConversationStatus.OPEN,
        )
        self.db.add(convo)
        try:
            await self.db.commit()
        except IntegrityError:
            # another request opened it first
            await self.db.rollback()
            return await self.get_by_booking_id(booking.id), False
        return await self.get_by_id(convo.id), True

    async def list_for_user(self, user_id: UUID) -> List[ChatConversation]:
        result = await self.db.execute(
            self._select()
            .where(
                or_(
                    ChatConversation.renter_id == user_id,
                    ChatConversation.owner_id == user_id,
                )
            )
            .order_by(
                ChatConversation.last_message_at.desc().nulls_last(),
                ChatConversation.created_at.desc(),
            )
        )
        return list(result.scalars().all())

    async def list_all(
        self, status: ConversationStatus | None = None
    ) -> List[ChatConversation]:
        stmt = self._select()
        if status is not None:
            stmt = stmt.where(ChatConversation.status == status)
        result = await self.db.execute(stmt.order_by(ChatConversation.created_at.desc()))
        return list(result.scalars().all())

    async def set_status(
        self, convo: ChatConversation, status: ConversationStatus
    ) -> ChatConversation:
        convo.status = status
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return await self.get_by_id(convo.id)

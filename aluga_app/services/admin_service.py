import logging
import uuid

from fastapi import HTTPException

from core.check_permission import CheckRolePermission
from core.mapper import ORMMapper
from models.enums import (
    BookingActor,
    BookingStatus,
    ConversationStatus,
    HostVerificationStatus,
    PropertyStatus,
)
from realtime.change_feed import UPDATE, change_feed
from repos.booking_repo import BookingRepo
from repos.chat_conversation_repo import ChatConversationRepo
from repos.profile_repo import UserProfileRepo
from repos.property_repo import PropertyRepo
from schemas.schema import BookingOut, PropertyOut, UserProfileOut

from .booking_service import BookingService
from .chat_service import ChatService

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(self, db):
        self.property_repo: PropertyRepo = PropertyRepo(db)
        self.booking_repo: BookingRepo = BookingRepo(db)
        self.conversation_repo: ChatConversationRepo = ChatConversationRepo(db)
        self.profile_repo: UserProfileRepo = UserProfileRepo(db)
        self.booking_service: BookingService = BookingService(db)
        self.chat_service: ChatService = ChatService(db)
        self.permission: CheckRolePermission = CheckRolePermission()
        self.mapper: ORMMapper = ORMMapper()

    async def list_properties(self, current_user, status: PropertyStatus | None = None):
        await self.permission.check_admin(current_user)
        return self.mapper.many(await self.property_repo.list_all(status), PropertyOut)

    async def moderate_property(self, current_user, property_id: uuid.UUID, data):
        await self.permission.check_admin(current_user)
        prop = await self.property_repo.get_by_id(property_id)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise HTTPException(status_code=400, detail="Nothing to update.")
        prop = await self.property_repo.update(prop, **changes)
        logger.info("Listing %s moderated by %s: %s", prop.id, current_user.id, changes)
        await change_feed.emit("properties", UPDATE, prop)
        return self.mapper.one(prop, PropertyOut)

    async def list_bookings(self, current_user, status: BookingStatus | None = None):
        await self.permission.check_admin(current_user)
        return self.mapper.many(await self.booking_repo.list_all(status), BookingOut)

    async def transition_booking(
        self, current_user, booking_id: uuid.UUID, target: BookingStatus
    ) -> BookingOut:
        await self.permission.check_admin(current_user)
        booking = await self.booking_repo.get_by_id(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        booking = await self.booking_service.apply_transition(
            booking, target, BookingActor.ADMIN
        )
        return self.mapper.one(booking, BookingOut)

    async def list_conversations(
        self, current_user, status: ConversationStatus | None = None
    ):
        await self.permission.check_admin(current_user)
        conversations = await self.conversation_repo.list_all(status)
        return [self.chat_service.view(convo) for convo in conversations]

    async def _conversation(self, conversation_id: uuid.UUID):
        convo = await self.conversation_repo.get_by_id(conversation_id)
        if not convo:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return convo

    async def set_conversation_status(
        self, current_user, conversation_id: uuid.UUID, status: ConversationStatus
    ):
        await self.permission.check_admin(current_user)
        convo = await self._conversation(conversation_id)
        return await self.chat_service.set_status(convo, status)

    async def post_system_message(
        self, current_user, conversation_id: uuid.UUID, text: str
    ):
        await self.permission.check_admin(current_user)
        convo = await self._conversation(conversation_id)
        return await self.chat_service.send_system_message(convo, current_user.id, text)

    async def list_hosts(
        self, current_user, status: HostVerificationStatus | None = None
    ):
        await self.permission.check_admin(current_user)
        return self.mapper.many(await self.profile_repo.list_hosts(status), UserProfileOut)

    async def set_host_verification(
        self, current_user, user_id: uuid.UUID, status: HostVerificationStatus
    ) -> UserProfileOut:
        await self.permission.check_admin(current_user)
        user = await self.profile_repo.get_by_id(user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        user = await self.profile_repo.set_host_verification(user, status)
        logger.info("Host %s verification set to %s", user.id, status.value)
        return self.mapper.one(user, UserProfileOut)

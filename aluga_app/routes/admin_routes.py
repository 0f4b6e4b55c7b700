import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from models.enums import (
    BookingStatus,
    ConversationStatus,
    HostVerificationStatus,
    PropertyStatus,
)
from models.models import UserProfile
from schemas.schema import (
    BookingOut,
    BookingTransition,
    ChatConversationView,
    ChatMessageOut,
    ConversationStatusUpdate,
    HostVerificationUpdate,
    PropertyModeration,
    PropertyOut,
    SystemMessageCreate,
    UserProfileOut,
)
from services.admin_service import AdminService

router = APIRouter(prefix="/admin", tags=["Admin Console"])


@cbv(router)
class AdminRoutes:
    current_user: UserProfile = Depends(get_current_user)
    db: AsyncSession = Depends(get_db_async)

    @router.get("/properties", response_model=list[PropertyOut])
    @safe_handler
    async def properties(self, status: Optional[PropertyStatus] = None):
        return await AdminService(self.db).list_properties(self.current_user, status)

    @router.patch("/properties/{property_id}", response_model=PropertyOut)
    @safe_handler
    async def moderate_property(self, property_id: uuid.UUID, data: PropertyModeration):
        return await AdminService(self.db).moderate_property(
            self.current_user, property_id, data
        )

    @router.get("/bookings", response_model=list[BookingOut])
    @safe_handler
    async def bookings(self, status: Optional[BookingStatus] = None):
        return await AdminService(self.db).list_bookings(self.current_user, status)

    @router.post("/bookings/{booking_id}/status", response_model=BookingOut)
    @safe_handler
    async def transition_booking(self, booking_id: uuid.UUID, data: BookingTransition):
        return await AdminService(self.db).transition_booking(
            self.current_user, booking_id, data.status
        )

    @router.get("/conversations", response_model=list[ChatConversationView])
    @safe_handler
    async def conversations(self, status: Optional[ConversationStatus] = None):
        return await AdminService(self.db).list_conversations(self.current_user, status)

    @router.patch(
        "/conversations/{conversation_id}", response_model=ChatConversationView
    )
    @safe_handler
    async def set_conversation_status(
        self, conversation_id: uuid.UUID, data: ConversationStatusUpdate
    ):
        return await AdminService(self.db).set_conversation_status(
            self.current_user, conversation_id, data.status
        )

    @router.post(
        "/conversations/{conversation_id}/messages", response_model=ChatMessageOut
    )
    @safe_handler
    async def post_system_message(
        self, conversation_id: uuid.UUID, data: SystemMessageCreate
    ):
        return await AdminService(self.db).post_system_message(
            self.current_user, conversation_id, data.text
        )

    @router.get("/hosts", response_model=list[UserProfileOut])
    @safe_handler
    async def hosts(self, status: Optional[HostVerificationStatus] = None):
        return await AdminService(self.db).list_hosts(self.current_user, status)

    @router.patch("/hosts/{user_id}/verification", response_model=UserProfileOut)
    @safe_handler
    async def set_host_verification(
        self, user_id: uuid.UUID, data: HostVerificationUpdate
    ):
        return await AdminService(self.db).set_host_verification(
            self.current_user, user_id, data.status
        )

import uuid

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import UserProfile
from schemas.schema import BookingCreate, BookingOut
from services.booking_service import BookingService

router = APIRouter(tags=["Bookings"])


@cbv(router)
class BookingRoutes:
    @router.post("/bookings", response_model=BookingOut, dependencies=[rate_limit])
    @safe_handler
    async def create_booking(
        self,
        data: BookingCreate,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await BookingService(db).create_booking(current_user, data)

    @router.get("/bookings", response_model=list[BookingOut])
    @safe_handler
    async def my_bookings(
        self,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await BookingService(db).list_my_bookings(current_user)

    @router.get("/bookings/{booking_id}", response_model=BookingOut)
    @safe_handler
    async def get_booking(
        self,
        booking_id: uuid.UUID,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await BookingService(db).get_booking(current_user, booking_id)

    @router.post(
        "/bookings/{booking_id}/mark-paid",
        response_model=BookingOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def mark_as_paid(
        self,
        booking_id: uuid.UUID,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await BookingService(db).mark_as_paid(current_user, booking_id)

    @router.post(
        "/bookings/{booking_id}/check-in",
        response_model=BookingOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def check_in(
        self,
        booking_id: uuid.UUID,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await BookingService(db).check_in(current_user, booking_id)

    @router.post(
        "/bookings/{booking_id}/check-out",
        response_model=BookingOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def check_out(
        self,
        booking_id: uuid.UUID,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await BookingService(db).check_out(current_user, booking_id)

    @router.post(
        "/bookings/{booking_id}/cancel",
        response_model=BookingOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def cancel(
        self,
        booking_id: uuid.UUID,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await BookingService(db).cancel(current_user, booking_id)

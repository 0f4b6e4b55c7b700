import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user, get_optional_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.enums import RentType
from models.models import UserProfile
from schemas.schema import (
    AvailabilityOut,
    PropertyCreate,
    PropertyOut,
    PropertyUpdate,
    QuoteOut,
)
from services.booking_service import BookingService
from services.property_service import PropertyService

router = APIRouter(tags=["Property Listings"])


@cbv(router=router)
class PropertyRoutes:
    @router.post("/properties", response_model=PropertyOut, dependencies=[rate_limit])
    @safe_handler
    async def create(
        self,
        data: PropertyCreate,
        db: AsyncSession = Depends(get_db_async),
        current_user: UserProfile = Depends(get_current_user),
    ):
        return await PropertyService(db).create_property(current_user, data)

    @router.patch(
        "/properties/{property_id}",
        response_model=PropertyOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def update(
        self,
        property_id: uuid.UUID,
        data: PropertyUpdate,
        db: AsyncSession = Depends(get_db_async),
        current_user: UserProfile = Depends(get_current_user),
    ):
        return await PropertyService(db).update_property(current_user, property_id, data)

    @router.get("/properties", response_model=list[PropertyOut])
    @safe_handler
    async def list_approved(
        self,
        rent_type: Optional[RentType] = None,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await PropertyService(db).list_approved(rent_type)

    @router.get("/properties/mine", response_model=list[PropertyOut])
    @safe_handler
    async def list_mine(
        self,
        db: AsyncSession = Depends(get_db_async),
        current_user: UserProfile = Depends(get_current_user),
    ):
        return await PropertyService(db).list_mine(current_user)

    @router.get("/properties/{property_id}", response_model=PropertyOut)
    @safe_handler
    async def get_one(
        self,
        property_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
        current_user: Optional[UserProfile] = Depends(get_optional_user),
    ):
        return await PropertyService(db).get_property(property_id, current_user)

    @router.get("/properties/{property_id}/quote", response_model=QuoteOut)
    @safe_handler
    async def quote(
        self,
        property_id: uuid.UUID,
        check_in: str = Query(...),
        check_out: str = Query(...),
        guests: Optional[int] = Query(None, ge=1),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await BookingService(db).quote(property_id, check_in, check_out, guests)

    @router.get("/properties/{property_id}/availability", response_model=AvailabilityOut)
    @safe_handler
    async def availability(
        self,
        property_id: uuid.UUID,
        check_in: str = Query(...),
        check_out: str = Query(...),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await BookingService(db).availability_for(property_id, check_in, check_out)

import uuid

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import UserProfile
from schemas.schema import OwnerReviewCreate, OwnerReviewOut
from services.review_service import ReviewService

router = APIRouter(tags=["Reviews"])


@cbv(router)
class ReviewRoutes:
    @router.post(
        "/bookings/{booking_id}/review",
        response_model=OwnerReviewOut,
        dependencies=[rate_limit],
    )
    @safe_handler
    async def review_stay(
        self,
        booking_id: uuid.UUID,
        data: OwnerReviewCreate,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ReviewService(db).review_stay(current_user, booking_id, data)

    @router.get(
        "/properties/{property_id}/reviews", response_model=list[OwnerReviewOut]
    )
    @safe_handler
    async def property_reviews(
        self,
        property_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ReviewService(db).list_for_property(property_id)

    @router.get("/owners/{owner_id}/reviews", response_model=list[OwnerReviewOut])
    @safe_handler
    async def owner_reviews(
        self,
        owner_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ReviewService(db).list_for_owner(owner_id)

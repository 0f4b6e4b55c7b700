from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from models.models import OwnerReview


class OwnerReviewRepo:
    def __init__(self, db):
        self.db = db

    async def create(self, **fields) -> OwnerReview:
        review = OwnerReview(**fields)
        self.db.add(review)
        try:
            await self.db.commit()
            await self.db.refresh(review)
            return review
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def get_by_booking_id(self, booking_id: UUID) -> OwnerReview | None:
        result = await self.db.execute(
            select(OwnerReview).where(OwnerReview.booking_id == booking_id)
        )
        return result.scalar_one_or_none()

    async def list_for_property(self, property_id: UUID) -> List[OwnerReview]:
        result = await self.db.execute(
            select(OwnerReview)
            .where(OwnerReview.property_id == property_id)
            .order_by(OwnerReview.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_for_owner(self, owner_id: UUID) -> List[OwnerReview]:
        result = await self.db.execute(
            select(OwnerReview)
            .where(OwnerReview.owner_id == owner_id)
            .order_by(OwnerReview.created_at.desc())
        )
        return list(result.scalars().all())

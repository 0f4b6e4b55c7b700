import uuid

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from core.check_permission import CheckRolePermission
from core.mapper import ORMMapper
from models.enums import BookingStatus
from repos.booking_repo import BookingRepo
from repos.review_repo import OwnerReviewRepo
from schemas.schema import OwnerReviewOut

ALREADY_REVIEWED = "This stay has already been reviewed."


class ReviewService:
    def __init__(self, db):
        self.repo: OwnerReviewRepo = OwnerReviewRepo(db)
        self.booking_repo: BookingRepo = BookingRepo(db)
        self.permission: CheckRolePermission = CheckRolePermission()
        self.mapper: ORMMapper = ORMMapper()

    async def review_stay(self, current_user, booking_id: uuid.UUID, data) -> OwnerReviewOut:
        booking = await self.booking_repo.get_by_id(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        await self.permission.check_renter(current_user, booking)
        if booking.status != BookingStatus.CHECKED_OUT:
            raise HTTPException(
                status_code=409, detail="Only finished stays can be reviewed."
            )
        if await self.repo.get_by_booking_id(booking.id):
            raise HTTPException(status_code=409, detail=ALREADY_REVIEWED)

        try:
            review = await self.repo.create(
                booking_id=booking.id,
                property_id=booking.property_id,
                renter_id=booking.renter_id,
                owner_id=booking.owner_id,
                rating=data.rating,
                tags=[tag.strip() for tag in data.tags if tag.strip()],
                comment=data.comment,
            )
        except IntegrityError:
            raise HTTPException(status_code=409, detail=ALREADY_REVIEWED)
        return self.mapper.one(review, OwnerReviewOut)

    async def list_for_property(self, property_id: uuid.UUID) -> list[OwnerReviewOut]:
        return self.mapper.many(await self.repo.list_for_property(property_id), OwnerReviewOut)

    async def list_for_owner(self, owner_id: uuid.UUID) -> list[OwnerReviewOut]:
        return self.mapper.many(await self.repo.list_for_owner(owner_id), OwnerReviewOut)

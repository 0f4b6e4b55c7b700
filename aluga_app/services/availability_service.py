import uuid
from datetime import datetime
from typing import List

from fastapi import HTTPException

from core.date_helper import parse_instant
from models.models import Booking
from repos.booking_repo import BookingRepo


class AvailabilityService:
    def __init__(self, db):
        self.repo = BookingRepo(db)

    @staticmethod
    def parse_range(check_in, check_out) -> tuple[datetime, datetime]:
        start = parse_instant(check_in)
        end = parse_instant(check_out)
        if start is None or end is None or end <= start:
            raise HTTPException(status_code=400, detail="Invalid date range.")
        return start, end

    async def find_conflicts(
        self,
        property_id: uuid.UUID,
        check_in,
        check_out,
        exclude_booking_id: uuid.UUID | None = None,
    ) -> List[Booking]:
        start, end = self.parse_range(check_in, check_out)
        return await self.repo.list_overlapping(
            property_id, start, end, exclude_booking_id=exclude_booking_id
        )

    async def is_available(
        self,
        property_id: uuid.UUID,
        check_in,
        check_out,
        exclude_booking_id: uuid.UUID | None = None,
    ) -> bool:
        conflicts = await self.find_conflicts(
            property_id, check_in, check_out, exclude_booking_id
        )
        return not conflicts

    async def ensure_available(
        self,
        property_id: uuid.UUID,
        check_in,
        check_out,
        exclude_booking_id: uuid.UUID | None = None,
    ) -> None:
        if not await self.is_available(
            property_id, check_in, check_out, exclude_booking_id
        ):
            raise HTTPException(
                status_code=409,
                detail="These dates are no longer available for this property.",
            )

import uuid
from datetime import datetime
from typing import Iterable, List

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from core.date_helper import utcnow
from models.enums import BookingStatus
from models.models import ACTIVE_BOOKING_STATUSES, Booking


class BookingRepo:
    def __init__(self, db):
        self.db = db

    async def create(self, **fields) -> Booking:
        booking = Booking(**fields)
        self.db.add(booking)
        try:
            await self.db.commit()
            await self.db.refresh(booking)
            return booking
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def get_by_id(self, booking_id: uuid.UUID) -> Booking | None:
        result = await self.db.execute(
            select(Booking)
            .options(selectinload(Booking.property))
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_overlapping(
        self,
        property_id: uuid.UUID,
        check_in: datetime,
        check_out: datetime,
        exclude_booking_id: uuid.UUID | None = None,
    ) -> List[Booking]:
        # half-open ranges: a checkout on the same instant as a checkin is free
        stmt = select(Booking).where(
            Booking.property_id == property_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.check_in_date < check_out,
            Booking.check_out_date > check_in,
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        result = await self.db.execute(stmt.order_by(Booking.check_in_date))
        return list(result.scalars().all())

    async def list_for_user(self, user_id: uuid.UUID) -> List[Booking]:
        result = await self.db.execute(
            select(Booking)
            .options(selectinload(Booking.property))
            .where(or_(Booking.renter_id == user_id, Booking.owner_id == user_id))
            .order_by(Booking.check_in_date.desc())
        )
        return list(result.scalars().all())

    async def list_all(self, status: BookingStatus | None = None) -> List[Booking]:
        stmt = select(Booking).options(selectinload(Booking.property))
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        result = await self.db.execute(stmt.order_by(Booking.created_at.desc()))
        return list(result.scalars().all())

    async def advance_unless(
        self,
        booking_id: uuid.UUID,
        target: BookingStatus,
        blocked: Iterable[BookingStatus],
    ) -> bool:
        """Move the booking to ``target`` unless it already sits in ``blocked``.

        The guard and the write are one UPDATE statement, so concurrent callers
        can apply it redundantly but never regress a booking. Returns whether
        a row changed.
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status.notin_(list(blocked)))
            .values(status=target, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return result.rowcount > 0

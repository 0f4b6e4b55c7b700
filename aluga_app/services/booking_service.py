import logging
import uuid

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from core.check_permission import CheckRolePermission
from core.mapper import ORMMapper
from models.enums import BookingActor, BookingStatus, PropertyStatus, UserRole
from models.models import ACTIVE_BOOKING_STATUSES, Booking, Property
from policy.booking_state_machine import (
    BookingTransitionError,
    blocked_sources,
    ensure_transition,
    log_transition,
)
from realtime.change_feed import INSERT, UPDATE, change_feed
from repos.booking_repo import BookingRepo
from repos.property_repo import PropertyRepo
from schemas.schema import AvailabilityOut, BookingOut, QuoteOut

from .availability_service import AvailabilityService
from .pricing_service import InvalidStayRange, PriceQuote, price_stay

logger = logging.getLogger(__name__)

DATES_TAKEN = "These dates are no longer available for this property."


class BookingService:
    def __init__(self, db):
        self.db = db
        self.repo: BookingRepo = BookingRepo(db)
        self.property_repo: PropertyRepo = PropertyRepo(db)
        self.availability: AvailabilityService = AvailabilityService(db)
        self.permission: CheckRolePermission = CheckRolePermission()
        self.mapper: ORMMapper = ORMMapper()

    @staticmethod
    def price_for(prop: Property, check_in, check_out, guests: int | None) -> PriceQuote:
        try:
            quote = price_stay(
                prop.rent_type, check_in, check_out, prop.price, prop.cleaning_fee
            )
        except InvalidStayRange as e:
            raise HTTPException(status_code=400, detail=str(e))

        if quote.nights < (prop.minimum_nights or 1):
            raise HTTPException(
                status_code=400,
                detail=f"This listing requires at least {prop.minimum_nights} night(s).",
            )
        if guests is not None and guests > (prop.guests_capacity or 1):
            raise HTTPException(
                status_code=400,
                detail=f"This listing hosts at most {prop.guests_capacity} guest(s).",
            )
        return quote

    async def _visible_property(self, property_id: uuid.UUID, current_user=None) -> Property:
        prop = await self.property_repo.get_by_id(property_id)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")
        if prop.status != PropertyStatus.APPROVED:
            is_owner = current_user is not None and current_user.id == prop.owner_id
            is_admin = current_user is not None and current_user.role == UserRole.ADMIN
            if not (is_owner or is_admin):
                raise HTTPException(status_code=404, detail="Property not found")
        return prop

    async def quote(
        self, property_id: uuid.UUID, check_in, check_out, guests: int | None = None
    ) -> QuoteOut:
        prop = await self._visible_property(property_id)
        start, end = self.availability.parse_range(check_in, check_out)
        quote = self.price_for(prop, start, end, guests)
        available = await self.availability.is_available(prop.id, start, end)

        return QuoteOut(
            property_id=prop.id,
            rent_type=quote.rent_type,
            check_in_date=start,
            check_out_date=end,
            nights=quote.nights,
            units=quote.units,
            unit_price=quote.unit_price,
            base_amount=quote.base,
            cleaning_fee=quote.cleaning_fee,
            client_fee_amount=quote.client_fee,
            owner_fee_amount=quote.owner_fee,
            total_paid_by_renter=quote.total_paid_by_renter,
            owner_payout_amount=quote.owner_payout,
            available=available,
        )

    async def availability_for(
        self, property_id: uuid.UUID, check_in, check_out
    ) -> AvailabilityOut:
        prop = await self._visible_property(property_id)
        start, end = self.availability.parse_range(check_in, check_out)
        return AvailabilityOut(
            property_id=prop.id,
            check_in_date=start,
            check_out_date=end,
            available=await self.availability.is_available(prop.id, start, end),
        )

    async def create_booking(self, current_user, data) -> BookingOut:
        start, end = self.availability.parse_range(data.check_in_date, data.check_out_date)

        # row lock serializes concurrent bookers of the same listing
        prop = await self.property_repo.get_for_update(data.property_id)
        if not prop or prop.status != PropertyStatus.APPROVED:
            await self.db.rollback()
            raise HTTPException(status_code=404, detail="Property not found")
        if prop.owner_id == current_user.id:
            await self.db.rollback()
            raise HTTPException(status_code=400, detail="You cannot book your own listing.")

        try:
            quote = self.price_for(prop, start, end, data.guests)
        except HTTPException:
            await self.db.rollback()
            raise

        if await self.repo.list_overlapping(prop.id, start, end):
            await self.db.rollback()
            raise HTTPException(status_code=409, detail=DATES_TAKEN)

        try:
            booking = await self.repo.create(
                property_id=prop.id,
                renter_id=current_user.id,
                owner_id=prop.owner_id,
                check_in_date=start,
                check_out_date=end,
                units=quote.units,
                guests=data.guests,
                base_amount=quote.booking_base_amount,
                client_fee_amount=quote.client_fee,
                owner_fee_amount=quote.owner_fee,
                total_paid_by_renter=quote.total_paid_by_renter,
                owner_payout_amount=quote.owner_payout,
                status=BookingStatus.PENDING_PAYMENT,
            )
        except IntegrityError:
            raise HTTPException(status_code=409, detail=DATES_TAKEN)

        logger.info(
            "Booking %s created for property %s by %s", booking.id, prop.id, current_user.id
        )
        await change_feed.emit("bookings", INSERT, booking)
        return self.mapper.one(booking, BookingOut)

    async def get_booking_for(self, current_user, booking_id: uuid.UUID) -> Booking:
        booking = await self.repo.get_by_id(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        await self.permission.check_booking_party(current_user, booking)
        return booking

    async def get_booking(self, current_user, booking_id: uuid.UUID) -> BookingOut:
        booking = await self.get_booking_for(current_user, booking_id)
        return self.mapper.one(booking, BookingOut)

    async def list_my_bookings(self, current_user) -> list[BookingOut]:
        bookings = await self.repo.list_for_user(current_user.id)
        return self.mapper.many(bookings, BookingOut)

    async def apply_transition(
        self, booking: Booking, target: BookingStatus, actor: BookingActor
    ) -> Booking:
        previous = booking.status
        try:
            ensure_transition(previous, target, actor)
        except BookingTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))

        if (
            target in ACTIVE_BOOKING_STATUSES
            and previous not in ACTIVE_BOOKING_STATUSES
        ):
            # row lock serializes date claims on the listing
            await self.property_repo.get_for_update(booking.property_id)
            if await self.repo.list_overlapping(
                booking.property_id,
                booking.check_in_date,
                booking.check_out_date,
                exclude_booking_id=booking.id,
            ):
                await self.db.rollback()
                raise HTTPException(status_code=409, detail=DATES_TAKEN)

        try:
            changed = await self.repo.advance_unless(
                booking.id, target, blocked_sources(target, actor)
            )
        except IntegrityError:
            raise HTTPException(status_code=409, detail=DATES_TAKEN)

        if not changed:
            raise HTTPException(
                status_code=409,
                detail="The booking changed in the meantime. Refresh and try again.",
            )

        log_transition(booking.id, previous, target, actor)
        booking = await self.repo.get_by_id(booking.id)
        await change_feed.emit("bookings", UPDATE, booking)
        return booking

    async def mark_as_paid(self, current_user, booking_id: uuid.UUID) -> BookingOut:
        booking = await self.get_booking_for(current_user, booking_id)
        await self.permission.check_renter(current_user, booking)
        booking = await self.apply_transition(
            booking, BookingStatus.CONFIRMED, BookingActor.RENTER
        )
        return self.mapper.one(booking, BookingOut)

    async def check_in(self, current_user, booking_id: uuid.UUID) -> BookingOut:
        booking = await self.get_booking_for(current_user, booking_id)
        await self.permission.check_owner(current_user, booking.owner_id)
        booking = await self.apply_transition(
            booking, BookingStatus.CHECKED_IN, BookingActor.OWNER
        )
        return self.mapper.one(booking, BookingOut)

    async def check_out(self, current_user, booking_id: uuid.UUID) -> BookingOut:
        booking = await self.get_booking_for(current_user, booking_id)
        await self.permission.check_owner(current_user, booking.owner_id)
        booking = await self.apply_transition(
            booking, BookingStatus.CHECKED_OUT, BookingActor.OWNER
        )
        return self.mapper.one(booking, BookingOut)

    async def cancel(self, current_user, booking_id: uuid.UUID) -> BookingOut:
        booking = await self.get_booking_for(current_user, booking_id)
        if current_user.id == booking.owner_id:
            actor = BookingActor.OWNER
        elif current_user.id == booking.renter_id:
            actor = BookingActor.RENTER
        else:
            actor = BookingActor.ADMIN
        booking = await self.apply_transition(booking, BookingStatus.CANCELLED, actor)
        return self.mapper.one(booking, BookingOut)

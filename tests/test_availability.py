"""Tests for date overlap checks."""

import pytest
from fastapi import HTTPException

from models.enums import BookingStatus
from services.availability_service import AvailabilityService

from conftest import make_booking, make_property


@pytest.mark.asyncio
async def test_overlapping_active_booking_conflicts(db, listing, renter):
    await make_booking(
        db, listing, renter, "2024-06-01", "2024-06-10", BookingStatus.PRE_CHECKING
    )
    service = AvailabilityService(db)

    conflicts = await service.find_conflicts(listing.id, "2024-06-09", "2024-06-15")

    assert len(conflicts) == 1
    assert not await service.is_available(listing.id, "2024-06-09", "2024-06-15")


@pytest.mark.asyncio
async def test_back_to_back_stays_do_not_conflict(db, listing, renter):
    await make_booking(
        db, listing, renter, "2024-06-01", "2024-06-10", BookingStatus.PRE_CHECKING
    )
    service = AvailabilityService(db)

    assert await service.is_available(listing.id, "2024-06-10", "2024-06-15")
    assert await service.is_available(listing.id, "2024-05-25", "2024-06-01")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [BookingStatus.PENDING_PAYMENT, BookingStatus.CANCELLED, BookingStatus.CHECKED_OUT],
)
async def test_inactive_bookings_do_not_hold_dates(db, listing, renter, status):
    await make_booking(db, listing, renter, "2024-06-01", "2024-06-10", status)

    assert await AvailabilityService(db).is_available(listing.id, "2024-06-02", "2024-06-05")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN],
)
async def test_confirmed_and_checked_in_hold_dates(db, listing, renter, status):
    await make_booking(db, listing, renter, "2024-06-01", "2024-06-10", status)

    assert not await AvailabilityService(db).is_available(
        listing.id, "2024-06-02", "2024-06-05"
    )


@pytest.mark.asyncio
async def test_other_listings_are_independent(db, owner, listing, renter):
    other = await make_property(db, owner, title="Apartamento centro")
    await make_booking(
        db, other, renter, "2024-06-01", "2024-06-10", BookingStatus.PRE_CHECKING
    )

    assert await AvailabilityService(db).is_available(listing.id, "2024-06-02", "2024-06-05")


@pytest.mark.asyncio
async def test_booking_does_not_conflict_with_itself(db, listing, renter):
    booking = await make_booking(
        db, listing, renter, "2024-06-01", "2024-06-10", BookingStatus.CONFIRMED
    )

    assert await AvailabilityService(db).is_available(
        listing.id,
        booking.check_in_date,
        booking.check_out_date,
        exclude_booking_id=booking.id,
    )


@pytest.mark.asyncio
async def test_ensure_available_raises_conflict(db, listing, renter):
    await make_booking(
        db, listing, renter, "2024-06-01", "2024-06-10", BookingStatus.PRE_CHECKING
    )

    with pytest.raises(HTTPException) as exc:
        await AvailabilityService(db).ensure_available(listing.id, "2024-06-05", "2024-06-06")
    assert exc.value.status_code == 409


@pytest.mark.parametrize(
    "check_in,check_out",
    [("2024-06-10", "2024-06-01"), ("2024-06-01", "2024-06-01"), ("soon", "later")],
)
def test_invalid_range_is_rejected(check_in, check_out):
    with pytest.raises(HTTPException) as exc:
        AvailabilityService.parse_range(check_in, check_out)
    assert exc.value.status_code == 400

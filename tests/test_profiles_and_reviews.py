"""Tests for profiles, host verification, listings and owner reviews."""

from decimal import Decimal

import pytest
from fastapi import HTTPException

from models.enums import BookingStatus, HostVerificationStatus, PropertyStatus
from schemas.schema import (
    OwnerReviewCreate,
    PropertyCreate,
    PropertyModeration,
    PropertyUpdate,
    UserProfileUpdate,
)
from services.admin_service import AdminService
from services.profile_service import ProfileService, normalize_phone
from services.property_service import PropertyService
from services.review_service import ReviewService

from conftest import make_booking, make_user


def test_normalize_phone():
    assert normalize_phone("(11) 98765-4321") == "+5511987654321"
    with pytest.raises(HTTPException):
        normalize_phone("123")


def test_cpf_must_have_eleven_digits():
    assert UserProfileUpdate(cpf="123.456.789-09").cpf == "12345678909"
    with pytest.raises(ValueError):
        UserProfileUpdate(cpf="1234")


@pytest.mark.asyncio
async def test_update_profile_normalizes_phone(db, renter):
    updated = await ProfileService(db).update_me(
        renter, UserProfileUpdate(phone="(11) 98765-4321")
    )
    assert updated.phone == "+5511987654321"


@pytest.mark.asyncio
async def test_host_verification_request(db, owner):
    service = ProfileService(db)

    with pytest.raises(HTTPException) as exc:
        await service.request_host_verification(owner)
    assert exc.value.status_code == 400

    await service.update_me(
        owner, UserProfileUpdate(phone="(21) 99876-5432", cpf="123.456.789-09")
    )
    requested = await service.request_host_verification(owner)
    assert requested.host_verification_status == HostVerificationStatus.PENDING
    assert requested.host_verification_requested_at is not None

    with pytest.raises(HTTPException) as exc:
        await service.request_host_verification(owner)
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_admin_verifies_a_host(db, admin, owner, listing):
    hosts = await AdminService(db).list_hosts(admin)
    assert [h.id for h in hosts] == [owner.id]

    verified = await AdminService(db).set_host_verification(
        admin, owner.id, HostVerificationStatus.VERIFIED
    )
    assert verified.host_verification_status == HostVerificationStatus.VERIFIED


@pytest.mark.asyncio
async def test_new_listing_waits_for_moderation(db, owner, admin):
    service = PropertyService(db)
    created = await service.create_property(
        owner,
        PropertyCreate(
            title="  Loft   no centro ",
            price=Decimal("150"),
            postal_code="01310100",
        ),
    )

    assert created.status == PropertyStatus.PENDING
    assert created.title == "Loft no centro"
    assert created.postal_code == "01310-100"
    assert [p.id for p in await service.list_approved()] == []

    with pytest.raises(HTTPException) as exc:
        await service.get_property(created.id)
    assert exc.value.status_code == 404
    assert (await service.get_property(created.id, owner)).id == created.id

    await AdminService(db).moderate_property(
        admin, created.id, PropertyModeration(status=PropertyStatus.APPROVED, verified=True)
    )
    assert [p.id for p in await service.list_approved()] == [created.id]


@pytest.mark.asyncio
async def test_only_the_owner_edits_a_listing(db, renter, listing):
    with pytest.raises(HTTPException) as exc:
        await PropertyService(db).update_property(
            renter, listing.id, PropertyUpdate(price=Decimal("1"))
        )
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_review_after_checkout(db, owner, listing, renter):
    stay = await make_booking(db, listing, renter, status=BookingStatus.CHECKED_OUT)
    service = ReviewService(db)

    review = await service.review_stay(
        renter, stay.id, OwnerReviewCreate(rating=5, tags=[" limpeza ", ""], comment="Ótimo")
    )
    assert review.rating == 5
    assert review.tags == ["limpeza"]
    assert review.owner_id == owner.id

    with pytest.raises(HTTPException) as exc:
        await service.review_stay(renter, stay.id, OwnerReviewCreate(rating=4))
    assert exc.value.status_code == 409

    assert [r.id for r in await service.list_for_property(listing.id)] == [review.id]
    assert [r.id for r in await service.list_for_owner(owner.id)] == [review.id]


@pytest.mark.asyncio
async def test_unfinished_stay_cannot_be_reviewed(db, renter, booking):
    with pytest.raises(HTTPException) as exc:
        await ReviewService(db).review_stay(renter, booking.id, OwnerReviewCreate(rating=3))
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_only_the_renter_reviews(db, listing, renter):
    stay = await make_booking(db, listing, renter, status=BookingStatus.CHECKED_OUT)
    stranger = await make_user(db)

    with pytest.raises(HTTPException) as exc:
        await ReviewService(db).review_stay(stranger, stay.id, OwnerReviewCreate(rating=3))
    assert exc.value.status_code == 403

"""Tests for PIX creation, status checks and booking finalization."""

import uuid

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from core.redis_idempotency import RedisIdempotency
from fintechs.mercadopago import MercadoPagoPayment
from models.enums import BookingStatus
from models.models import Booking, PaymentTransaction
from services.pix_payment_service import PixPaymentService

from conftest import PAST_EXPIRY, RecordingNotifier, make_booking


def make_service(db, provider, notifier=None) -> PixPaymentService:
    return PixPaymentService(
        db,
        provider=provider,
        lock=RedisIdempotency(namespace="test-pix"),
        notifier=notifier or RecordingNotifier(),
    )


async def transaction_count(db, booking_id) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(PaymentTransaction)
        .where(PaymentTransaction.booking_id == booking_id)
    )
    return result.scalar_one()


async def booking_status(db, booking_id) -> BookingStatus:
    result = await db.execute(
        select(Booking.status)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_create_returns_pix_and_stores_transaction(db, renter, booking, provider):
    service = make_service(db, provider)

    result = await service.create(renter, booking.id, payer_email="bruno@example.com")

    assert result.status == "pending"
    assert result.qr_code
    assert result.booking_status == BookingStatus.PENDING_PAYMENT
    assert not result.finalized
    assert result.amount == booking.total_paid_by_renter

    assert len(provider.created) == 1
    request = provider.created[0]
    assert request["booking_id"] == str(booking.id)
    assert request["amount"] == booking.total_paid_by_renter
    assert request["description"] == "Reserva Casa na praia"
    assert await transaction_count(db, booking.id) == 1


@pytest.mark.asyncio
async def test_open_charge_is_reused(db, renter, booking, provider):
    service = make_service(db, provider)

    first = await service.create(renter, booking.id, payer_email="bruno@example.com")
    second = await service.create(renter, booking.id, payer_email="bruno@example.com")

    assert second.payment_id == first.payment_id
    assert len(provider.created) == 1
    assert await transaction_count(db, booking.id) == 1


@pytest.mark.asyncio
async def test_expired_charge_is_replaced(db, renter, booking, provider):
    service = make_service(db, provider)
    old_id = provider.add(booking.id, expires=PAST_EXPIRY)
    await service.record(booking, await provider.get_payment(old_id))

    result = await service.create(renter, booking.id, payer_email="bruno@example.com")

    assert result.payment_id != old_id
    assert len(provider.created) == 1
    assert await transaction_count(db, booking.id) == 2


@pytest.mark.asyncio
async def test_charge_without_qr_is_replaced(db, renter, booking, provider):
    service = make_service(db, provider)
    old_id = provider.add(booking.id, with_qr=False)
    await service.record(booking, await provider.get_payment(old_id))

    result = await service.create(renter, booking.id, payer_email="bruno@example.com")

    assert result.payment_id != old_id
    assert result.qr_code


@pytest.mark.asyncio
async def test_create_with_already_approved_charge_finalizes(db, renter, booking, provider):
    service = make_service(db, provider)
    first = await service.create(renter, booking.id, payer_email="bruno@example.com")
    provider.set_status(first.payment_id, "approved")

    result = await service.create(renter, booking.id, payer_email="bruno@example.com")

    assert result.payment_id == first.payment_id
    assert result.finalized
    assert result.booking_status == BookingStatus.PRE_CHECKING
    assert len(provider.created) == 1


@pytest.mark.asyncio
async def test_create_rejects_taken_dates_before_charging(
    db, listing, renter, booking, provider
):
    other_renter_booking = await make_booking(
        db, listing, renter, "2024-06-05", "2024-06-12", BookingStatus.PRE_CHECKING
    )
    assert other_renter_booking.id != booking.id

    with pytest.raises(HTTPException) as exc:
        await make_service(db, provider).create(
            renter, booking.id, payer_email="bruno@example.com"
        )

    assert exc.value.status_code == 409
    assert provider.created == []


@pytest.mark.asyncio
async def test_only_the_renter_can_pay(db, owner, booking, provider):
    with pytest.raises(HTTPException) as exc:
        await make_service(db, provider).create(
            owner, booking.id, payer_email="ana@example.com"
        )
    assert exc.value.status_code == 403


@pytest.mark.asyncio
async def test_unknown_booking(db, renter, provider):
    with pytest.raises(HTTPException) as exc:
        await make_service(db, provider).create(
            renter, uuid.uuid4(), payer_email="bruno@example.com"
        )
    assert exc.value.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED],
)
async def test_closed_bookings_cannot_be_paid(db, listing, renter, provider, status):
    closed = await make_booking(db, listing, renter, status=status)
    service = make_service(db, provider)

    with pytest.raises(HTTPException) as exc:
        await service.create(renter, closed.id, payer_email="bruno@example.com")
    assert exc.value.status_code == 409

    with pytest.raises(HTTPException) as exc:
        await service.check(renter, closed.id)
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_check_approved_payment_moves_booking_to_pre_checking(
    db, renter, booking, provider
):
    notifier = RecordingNotifier()
    service = make_service(db, provider, notifier)
    created = await service.create(renter, booking.id, payer_email="bruno@example.com")
    provider.set_status(created.payment_id, "approved")

    result = await service.check(renter, booking.id)

    assert result.status == "approved"
    assert result.finalized
    assert result.warning is None
    assert result.booking_status == BookingStatus.PRE_CHECKING
    assert await booking_status(db, booking.id) == BookingStatus.PRE_CHECKING

    assert len(notifier.sent) == 1
    assert notifier.sent[0].to_email == "bruno@example.com"
    assert notifier.sent[0].property_title == "Casa na praia"


@pytest.mark.asyncio
async def test_check_pending_payment_changes_nothing(db, renter, booking, provider):
    service = make_service(db, provider)
    created = await service.create(renter, booking.id, payer_email="bruno@example.com")

    result = await service.check(renter, booking.id, payment_id=created.payment_id)

    assert result.status == "pending"
    assert not result.finalized
    assert await booking_status(db, booking.id) == BookingStatus.PENDING_PAYMENT


@pytest.mark.asyncio
async def test_check_without_any_payment(db, renter, booking, provider):
    with pytest.raises(HTTPException) as exc:
        await make_service(db, provider).check(renter, booking.id)
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_check_rejects_payment_of_another_booking(
    db, listing, renter, booking, provider
):
    other = await make_booking(db, listing, renter, "2024-07-01", "2024-07-05")
    foreign_id = provider.add(other.id, status="approved")

    with pytest.raises(HTTPException) as exc:
        await make_service(db, provider).check(renter, booking.id, payment_id=foreign_id)

    assert exc.value.status_code == 400
    assert await booking_status(db, booking.id) == BookingStatus.PENDING_PAYMENT


@pytest.mark.asyncio
async def test_replayed_approval_is_applied_once(db, booking, provider):
    notifier = RecordingNotifier()
    service = make_service(db, provider, notifier)
    payment_id = provider.add(booking.id, status="approved")
    payment = await provider.get_payment(payment_id)

    first = await service.record(booking, payment)
    second = await service.record(booking, payment)

    assert first.finalized
    assert not second.finalized
    assert second.booking_status == BookingStatus.PRE_CHECKING
    assert await transaction_count(db, booking.id) == 1
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_paid_at_is_kept_on_replay(db, booking, provider):
    service = make_service(db, provider)
    payment_id = provider.add(booking.id, status="approved")
    payment = await provider.get_payment(payment_id)

    await service.record(booking, payment)
    first = await service.transaction_repo.get_by_provider_payment_id(payment_id)
    paid_at = first.paid_at
    await service.record(booking, payment)
    again = await service.transaction_repo.get_by_provider_payment_id(payment_id)

    assert paid_at is not None
    assert again.paid_at == paid_at


@pytest.mark.asyncio
async def test_manually_confirmed_booking_advances(db, listing, renter, provider):
    confirmed = await make_booking(db, listing, renter, status=BookingStatus.CONFIRMED)
    payment_id = provider.add(confirmed.id, status="approved")

    result = await make_service(db, provider).record(
        confirmed, await provider.get_payment(payment_id)
    )

    assert result.finalized
    assert result.booking_status == BookingStatus.PRE_CHECKING


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED],
)
async def test_late_approval_never_regresses(db, listing, renter, provider, status):
    later = await make_booking(db, listing, renter, status=status)
    payment_id = provider.add(later.id, status="approved")

    result = await make_service(db, provider).record(
        later, await provider.get_payment(payment_id)
    )

    assert not result.finalized
    assert result.booking_status == status
    assert await transaction_count(db, later.id) == 1


@pytest.mark.asyncio
async def test_failed_confirmation_mail_becomes_a_warning(db, booking, provider):
    service = make_service(db, provider, RecordingNotifier(fail=True))
    payment_id = provider.add(booking.id, status="approved")

    result = await service.record(booking, await provider.get_payment(payment_id))

    assert result.finalized
    assert result.booking_status == BookingStatus.PRE_CHECKING
    assert "SMTP unavailable" in result.warning


def test_reuse_rules(provider):
    approved = provider.add(status="approved", with_qr=False)
    fresh = provider.add()
    expired = provider.add(expires=PAST_EXPIRY)
    rejected = provider.add(status="rejected")

    def payment(payment_id):
        return MercadoPagoPayment.from_payload(provider.payments[payment_id])

    assert PixPaymentService.reusable(payment(approved))
    assert PixPaymentService.reusable(payment(fresh))
    assert not PixPaymentService.reusable(payment(expired))
    assert not PixPaymentService.reusable(payment(rejected))

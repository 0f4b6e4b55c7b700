import logging
import uuid

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from core.check_permission import CheckRolePermission
from core.date_helper import utcnow
from core.redis_idempotency import DuplicateRequestError, RedisIdempotency
from email_notify.email_service import (
    BookingConfirmation,
    NotificationError,
    send_booking_confirmation_email,
)
from fintechs.mercadopago import (
    REUSABLE_PIX_STATUSES,
    MercadoPagoClient,
    MercadoPagoPayment,
    PaymentProviderError,
)
from models.enums import BookingActor, BookingStatus, PaymentProvider
from models.models import Booking, PaymentTransaction
from policy.booking_state_machine import (
    PAYMENT_BLOCKED_STATUSES,
    PAYMENT_CLOSED_STATUSES,
    log_transition,
)
from realtime.change_feed import INSERT, UPDATE, change_feed
from repos.booking_repo import BookingRepo
from repos.payment_transaction_repo import PaymentTransactionRepo
from repos.profile_repo import UserProfileRepo
from schemas.schema import PixPaymentOut

from .availability_service import AvailabilityService
from .pricing_service import round_currency

logger = logging.getLogger(__name__)


class PixPaymentService:
    """Turns Mercado Pago payment states into transaction rows and booking moves."""

    def __init__(
        self,
        db,
        provider: MercadoPagoClient | None = None,
        lock: RedisIdempotency | None = None,
        notifier=None,
    ):
        self.db = db
        self.provider = provider or MercadoPagoClient()
        self.lock = lock or RedisIdempotency(namespace="pix-create")
        self.notifier = notifier or send_booking_confirmation_email
        self.booking_repo: BookingRepo = BookingRepo(db)
        self.transaction_repo: PaymentTransactionRepo = PaymentTransactionRepo(db)
        self.profile_repo: UserProfileRepo = UserProfileRepo(db)
        self.availability: AvailabilityService = AvailabilityService(db)
        self.permission: CheckRolePermission = CheckRolePermission()

    async def _payable_booking(self, current_user, booking_id: uuid.UUID) -> Booking:
        booking = await self.booking_repo.get_by_id(booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        await self.permission.check_renter(current_user, booking)
        if booking.status in PAYMENT_CLOSED_STATUSES:
            raise HTTPException(status_code=409, detail="invalid booking state")
        return booking

    @staticmethod
    def reusable(payment: MercadoPagoPayment) -> bool:
        if payment.approved:
            return True
        if not payment.pix.renderable or payment.status not in REUSABLE_PIX_STATUSES:
            return False
        return payment.date_of_expiration is None or payment.date_of_expiration > utcnow()

    async def create(
        self,
        current_user,
        booking_id: uuid.UUID,
        payer_email: str,
        payer_cpf: str | None = None,
    ) -> PixPaymentOut:
        booking = await self._payable_booking(current_user, booking_id)
        await self.availability.ensure_available(
            booking.property_id,
            booking.check_in_date,
            booking.check_out_date,
            exclude_booking_id=booking.id,
        )

        async def handler():
            previous = await self.transaction_repo.latest_for_booking(booking.id)
            if previous:
                payment = await self.provider.get_payment(previous.provider_payment_id)
                if self.reusable(payment):
                    logger.info(
                        "Reusing payment %s for booking %s (%s)",
                        payment.id,
                        booking.id,
                        payment.status,
                    )
                    return await self.record(booking, payment)
                await self.record(booking, payment)

            payment = await self.provider.create_pix_payment(
                amount=booking.total_paid_by_renter,
                description=f"Reserva {booking.property.title}",
                booking_id=str(booking.id),
                renter_id=str(booking.renter_id),
                owner_id=str(booking.owner_id),
                payer_email=payer_email,
                payer_cpf=payer_cpf,
                idempotency_key=str(uuid.uuid4()),
            )
            logger.info("Created PIX payment %s for booking %s", payment.id, booking.id)
            return await self.record(booking, payment)

        try:
            return await self.lock.run_once(str(booking.id), handler)
        except DuplicateRequestError:
            raise HTTPException(
                status_code=409,
                detail="A payment for this booking is already being created.",
            )

    async def check(
        self,
        current_user,
        booking_id: uuid.UUID,
        payment_id: str | None = None,
    ) -> PixPaymentOut:
        booking = await self._payable_booking(current_user, booking_id)

        if not payment_id:
            latest = await self.transaction_repo.latest_for_booking(booking.id)
            if not latest:
                raise HTTPException(
                    status_code=400, detail="No payment found for this booking."
                )
            payment_id = latest.provider_payment_id

        payment = await self.provider.get_payment(payment_id)
        if payment.booking_reference and payment.booking_reference != str(booking.id):
            raise HTTPException(
                status_code=400, detail="This payment belongs to another booking."
            )
        return await self.record(booking, payment)

    async def persist(
        self, booking: Booking, payment: MercadoPagoPayment
    ) -> PaymentTransaction:
        if not payment.id:
            raise PaymentProviderError(None, "payment response without an id")

        transaction = await self.transaction_repo.upsert(
            booking_id=booking.id,
            provider=PaymentProvider.MERCADOPAGO,
            provider_payment_id=payment.id,
            payment_method=payment.payment_method_id,
            amount=round_currency(payment.transaction_amount),
            status=payment.status,
            status_detail=payment.status_detail or None,
            payer_email=payment.payer_email or None,
            qr_code=payment.pix.qr_code or None,
            qr_code_base64=payment.pix.qr_code_base64 or None,
            ticket_url=payment.pix.ticket_url or None,
            raw_response=payment.raw,
            expires_at=payment.date_of_expiration,
            paid_at=utcnow() if payment.approved else None,
        )
        action = INSERT if transaction.created_at == transaction.updated_at else UPDATE
        await change_feed.emit("payment_transactions", action, transaction)
        return transaction

    async def finalize(
        self, booking: Booking, payment: MercadoPagoPayment
    ) -> tuple[bool, str | None]:
        """Advance the booking to pre_checking once its payment is approved."""
        if not payment.approved:
            return False, None

        try:
            changed = await self.booking_repo.advance_unless(
                booking.id, BookingStatus.PRE_CHECKING, PAYMENT_BLOCKED_STATUSES
            )
        except IntegrityError:
            logger.error(
                "Payment %s approved but booking %s overlaps an active stay",
                payment.id,
                booking.id,
            )
            return False, None

        if not changed:
            return False, None

        log_transition(
            booking.id, booking.status, BookingStatus.PRE_CHECKING, BookingActor.PAYMENT
        )
        booking = await self.booking_repo.get_by_id(booking.id)
        await change_feed.emit("bookings", UPDATE, booking)
        return True, await self.notify(booking, payment)

    async def notify(self, booking: Booking, payment: MercadoPagoPayment) -> str | None:
        renter = await self.profile_repo.get_by_id(booking.renter_id)
        to_email = payment.payer_email or (renter.email if renter else None)
        if not to_email:
            return "Payment confirmed, but there is no e-mail address to send the confirmation to."

        try:
            await self.notifier(
                BookingConfirmation(
                    to_email=to_email,
                    booking_id=str(booking.id),
                    guest_name=(renter.full_name if renter else None) or "",
                    property_title=booking.property.title,
                    address_text=booking.property.address_text or "",
                    check_in_date=booking.check_in_date,
                    check_out_date=booking.check_out_date,
                    units=booking.units,
                    total_paid=booking.total_paid_by_renter,
                    payment_method=payment.payment_method_id,
                )
            )
        except NotificationError as e:
            return f"Payment confirmed, but the confirmation e-mail could not be sent: {e}"
        return None

    async def record(self, booking: Booking, payment: MercadoPagoPayment) -> PixPaymentOut:
        # nothing is finalized on a transaction that was not stored
        transaction = await self.persist(booking, payment)
        finalized, warning = await self.finalize(booking, payment)
        current = await self.booking_repo.get_by_id(booking.id)

        return PixPaymentOut(
            booking_id=current.id,
            booking_status=current.status,
            payment_id=transaction.provider_payment_id,
            status=transaction.status,
            status_detail=transaction.status_detail,
            amount=transaction.amount,
            qr_code=transaction.qr_code,
            qr_code_base64=transaction.qr_code_base64,
            ticket_url=transaction.ticket_url,
            expires_at=transaction.expires_at,
            finalized=finalized,
            warning=warning,
        )

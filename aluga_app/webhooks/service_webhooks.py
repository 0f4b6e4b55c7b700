import logging
import uuid
from typing import Any, Mapping

from fastapi import HTTPException, Request

from core.breaker import CircuitOpenError
from core.settings import settings
from fintech_verify_signature.verify_signature import FintechsVerifySignature
from fintechs.mercadopago import MercadoPagoClient, PaymentProviderError
from repos.booking_repo import BookingRepo
from schemas.schema import WebhookResult
from services.pix_payment_service import PixPaymentService

logger = logging.getLogger(__name__)


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def extract_payment_id(body: Any, query: Mapping[str, str]) -> str | None:
    """Payment id from the event body, then from the query string."""
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, dict) and _clean(data.get("id")):
            return _clean(data.get("id"))
        if _clean(body.get("id")):
            return _clean(body.get("id"))
        resource = _clean(body.get("resource"))
        if resource:
            tail = resource.rstrip("/").rsplit("/", 1)[-1]
            if _clean(tail):
                return _clean(tail)

    for key in ("data.id", "id", "resource_id"):
        if _clean(query.get(key)):
            return _clean(query.get(key))
    return None


def _as_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError):
        return None


class MercadoPagoWebhook:
    def __init__(self, db, request: Request, provider: MercadoPagoClient | None = None):
        self.request = request
        self.payments: PixPaymentService = PixPaymentService(db, provider=provider)
        self.booking_repo: BookingRepo = BookingRepo(db)
        self.verify_signature: FintechsVerifySignature = FintechsVerifySignature()

    async def _body(self) -> Any:
        raw = await self.request.body()
        if not raw:
            return {}
        try:
            return await self.request.json()
        except ValueError:
            logger.info("Mercado Pago webhook with a non-JSON body")
            return {}

    async def handle(self) -> WebhookResult:
        body = await self._body()
        payment_id = extract_payment_id(body, self.request.query_params)
        if not payment_id:
            logger.info("Mercado Pago webhook ignored: no payment id")
            return WebhookResult(ignored=True, reason="payment_id_not_found")

        secret = settings.MERCADOPAGO_WEBHOOK_SECRET
        if secret and not self.verify_signature.verify_mercadopago_signature(
            secret,
            payment_id,
            self.request.headers.get("x-signature"),
            self.request.headers.get("x-request-id"),
        ):
            logger.warning("Mercado Pago webhook rejected: bad signature for %s", payment_id)
            raise HTTPException(status_code=401, detail="invalid_webhook_signature")

        try:
            payment = await self.payments.provider.get_payment(payment_id)
        except (PaymentProviderError, CircuitOpenError) as e:
            # non-2xx makes the provider deliver the event again
            raise HTTPException(status_code=500, detail=str(e))

        booking_id = _as_uuid(payment.booking_reference)
        booking = await self.booking_repo.get_by_id(booking_id) if booking_id else None
        if not booking:
            logger.info(
                "Mercado Pago webhook ignored: payment %s has no known booking", payment_id
            )
            return WebhookResult(
                ignored=True, reason="booking_id_not_found", payment_id=payment.id
            )

        try:
            outcome = await self.payments.record(booking, payment)
        except (PaymentProviderError, CircuitOpenError) as e:
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(
            "Mercado Pago webhook applied: payment %s (%s) booking %s finalized=%s",
            outcome.payment_id,
            outcome.status,
            outcome.booking_id,
            outcome.finalized,
        )
        return WebhookResult(
            payment_id=outcome.payment_id,
            booking_id=outcome.booking_id,
            status=outcome.status,
            finalized=outcome.finalized,
        )

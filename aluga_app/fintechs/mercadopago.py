import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from core.breaker import CircuitBreaker
from core.date_helper import parse_instant, utcnow
from core.settings import settings

logger = logging.getLogger(__name__)

PROVIDER_NAME = "mercadopago"
APPROVED = "approved"
REUSABLE_PIX_STATUSES = {"pending", "in_process"}


class PaymentProviderError(Exception):
    def __init__(self, status_code: int | None, body: str):
        self.status_code = status_code
        self.body = body
        prefix = f"Mercado Pago {status_code}" if status_code else "Mercado Pago"
        super().__init__(f"{prefix}: {body or 'no details'}")


class PaymentProviderClientError(PaymentProviderError):
    """4xx from the provider: the request was refused, the provider is healthy."""


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _provider_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.000+00:00")


def _as_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value is not None else Decimal("0")
    except (InvalidOperation, ValueError):
        return Decimal("0")


@dataclass(frozen=True)
class PixData:
    qr_code: str = ""
    qr_code_base64: str = ""
    ticket_url: str = ""

    @property
    def renderable(self) -> bool:
        return bool(self.qr_code or self.qr_code_base64)


@dataclass(frozen=True)
class MercadoPagoPayment:
    id: str
    status: str
    status_detail: str = ""
    payment_method_id: str = "pix"
    transaction_amount: Decimal = Decimal("0")
    external_reference: str = ""
    metadata: dict = field(default_factory=dict)
    payer_email: str = ""
    pix: PixData = field(default_factory=PixData)
    date_of_expiration: datetime | None = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "MercadoPagoPayment":
        payload = _as_dict(payload)
        transaction_data = _as_dict(
            _as_dict(payload.get("point_of_interaction")).get("transaction_data")
        )
        return cls(
            id=_as_str(payload.get("id")),
            status=_as_str(payload.get("status")).lower(),
            status_detail=_as_str(payload.get("status_detail")),
            payment_method_id=_as_str(payload.get("payment_method_id")) or "pix",
            transaction_amount=_as_decimal(payload.get("transaction_amount")),
            external_reference=_as_str(payload.get("external_reference")),
            metadata=_as_dict(payload.get("metadata")),
            payer_email=_as_str(_as_dict(payload.get("payer")).get("email")).lower(),
            pix=PixData(
                qr_code=_as_str(transaction_data.get("qr_code")),
                qr_code_base64=_as_str(transaction_data.get("qr_code_base64")),
                ticket_url=_as_str(transaction_data.get("ticket_url")),
            ),
            date_of_expiration=parse_instant(payload.get("date_of_expiration")),
            raw=payload,
        )

    @property
    def approved(self) -> bool:
        return self.status == APPROVED

    @property
    def booking_reference(self) -> str:
        return self.external_reference or _as_str(self.metadata.get("booking_id"))


mercadopago_breaker = CircuitBreaker(name=PROVIDER_NAME)


class MercadoPagoClient:
    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        breaker: CircuitBreaker | None = None,
    ):
        self.access_token = access_token or settings.MERCADOPAGO_ACCESS_TOKEN
        self.base_url = (base_url or settings.MERCADOPAGO_API_BASE).rstrip("/")
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self.transport = transport
        self.breaker = breaker or mercadopago_breaker

    def _headers(self, idempotency_key: str | None = None) -> dict:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: dict | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        if not self.access_token:
            raise PaymentProviderError(None, "missing MERCADOPAGO_ACCESS_TOKEN")

        async def handler():
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=self.timeout,
                    transport=self.transport,
                ) as client:
                    res = await client.request(
                        method,
                        path,
                        headers=self._headers(idempotency_key),
                        json=body,
                    )
            except httpx.TimeoutException as e:
                raise PaymentProviderError(
                    None, f"no response within {self.timeout:g}s"
                ) from e
            except httpx.HTTPError as e:
                raise PaymentProviderError(None, f"request failed: {e}") from e

            text = res.text
            if res.is_error:
                logger.warning(
                    "Mercado Pago %s %s -> %s: %s", method, path, res.status_code, text
                )
                if res.status_code < 500:
                    # a refused request is returned, not raised, so the breaker skips it
                    return PaymentProviderClientError(res.status_code, text)
                raise PaymentProviderError(res.status_code, text)

            if not text:
                return {}
            try:
                return json.loads(text)
            except ValueError:
                return {"raw": text}

        result = await self.breaker.call(handler)
        if isinstance(result, PaymentProviderClientError):
            raise result
        return result

    async def create_pix_payment(
        self,
        *,
        amount: Decimal,
        description: str,
        booking_id: str,
        renter_id: str,
        owner_id: str,
        payer_email: str,
        idempotency_key: str,
        payer_cpf: str | None = None,
        notification_url: str | None = None,
    ) -> MercadoPagoPayment:
        payer: dict[str, Any] = {"email": payer_email}
        cpf = re.sub(r"\D", "", payer_cpf or "")
        if len(cpf) == 11:
            payer["identification"] = {"type": "CPF", "number": cpf}

        payload: dict[str, Any] = {
            "transaction_amount": float(amount),
            "description": description,
            "payment_method_id": "pix",
            "external_reference": booking_id,
            "payer": payer,
            "date_of_expiration": _provider_timestamp(
                utcnow() + timedelta(minutes=settings.PIX_EXPIRATION_MINUTES)
            ),
            "metadata": {
                "booking_id": booking_id,
                "renter_id": renter_id,
                "owner_id": owner_id,
                "source": "aluga-aluga",
            },
        }
        notification_url = notification_url or settings.MERCADOPAGO_WEBHOOK_URL
        if notification_url:
            payload["notification_url"] = notification_url

        data = await self._request(
            "POST", "/v1/payments", body=payload, idempotency_key=idempotency_key
        )
        return MercadoPagoPayment.from_payload(data)

    async def get_payment(self, payment_id: str) -> MercadoPagoPayment:
        data = await self._request("GET", f"/v1/payments/{payment_id}")
        return MercadoPagoPayment.from_payload(data)

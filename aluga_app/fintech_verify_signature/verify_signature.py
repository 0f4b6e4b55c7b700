import hashlib
import hmac


class FintechsVerifySignature:
    @staticmethod
    def parse_mercadopago_signature(header: str | None) -> tuple[str | None, str | None]:
        """Split an ``x-signature`` header (``ts=...,v1=...``) into (ts, v1)."""
        ts = v1 = None
        for part in (header or "").split(","):
            key, _, value = part.strip().partition("=")
            key = key.strip().lower()
            if key == "ts":
                ts = value.strip() or None
            elif key == "v1":
                v1 = value.strip().lower() or None
        return ts, v1

    @staticmethod
    def mercadopago_manifest(payment_id: str, request_id: str, ts: str) -> str:
        return f"id:{payment_id.lower()};request-id:{request_id};ts:{ts};"

    @classmethod
    def verify_mercadopago_signature(
        cls,
        secret: str,
        payment_id: str,
        signature: str | None,
        request_id: str | None,
    ) -> bool:
        ts, v1 = cls.parse_mercadopago_signature(signature)
        if not (ts and v1 and request_id and payment_id):
            return False

        expected = hmac.new(
            secret.encode(),
            cls.mercadopago_manifest(payment_id, request_id, ts).encode(),
            hashlib.sha256,
        ).hexdigest()

        return hmac.compare_digest(expected, v1)

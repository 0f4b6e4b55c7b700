from fastapi import APIRouter, Depends, Request
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_db import get_db_async
from core.get_provider import get_payment_provider
from core.safe_handler import safe_handler
from fintechs.mercadopago import MercadoPagoClient
from schemas.schema import WebhookResult
from webhooks.service_webhooks import MercadoPagoWebhook

router = APIRouter(tags=["Webhooks"])


@cbv(router)
class WebhookRoutes:
    @router.post("/webhooks/mercadopago", response_model=WebhookResult)
    @safe_handler
    async def mercadopago_webhook(
        self,
        request: Request,
        db: AsyncSession = Depends(get_db_async),
        provider: MercadoPagoClient = Depends(get_payment_provider),
    ):
        return await MercadoPagoWebhook(db, request, provider=provider).handle()

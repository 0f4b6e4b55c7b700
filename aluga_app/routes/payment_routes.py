from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.get_provider import get_payment_provider
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from fintechs.mercadopago import MercadoPagoClient
from models.models import UserProfile
from schemas.schema import PixCheckRequest, PixCreateRequest, PixPaymentOut
from services.pix_payment_service import PixPaymentService

router = APIRouter(tags=["PIX Payments"])


@cbv(router)
class PaymentRoutes:
    @router.post(
        "/payments/pix", response_model=PixPaymentOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def create_pix(
        self,
        data: PixCreateRequest,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
        provider: MercadoPagoClient = Depends(get_payment_provider),
    ):
        return await PixPaymentService(db, provider=provider).create(
            current_user,
            booking_id=data.booking_id,
            payer_email=data.payer_email,
            payer_cpf=data.payer_cpf,
        )

    @router.post(
        "/payments/pix/check", response_model=PixPaymentOut, dependencies=[rate_limit]
    )
    @safe_handler
    async def check_pix(
        self,
        data: PixCheckRequest,
        current_user: UserProfile = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
        provider: MercadoPagoClient = Depends(get_payment_provider),
    ):
        return await PixPaymentService(db, provider=provider).check(
            current_user, booking_id=data.booking_id, payment_id=data.payment_id
        )

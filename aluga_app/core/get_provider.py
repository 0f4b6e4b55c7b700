from fintechs.mercadopago import MercadoPagoClient
from models.enums import PaymentProvider


class ProviderResolver:
    def __init__(self):
        self.payment_providers = {
            PaymentProvider.MERCADOPAGO: MercadoPagoClient,
        }

    def get_payment(self, provider: PaymentProvider = PaymentProvider.MERCADOPAGO):
        return self.payment_providers[provider]()


resolver = ProviderResolver()


async def get_payment_provider() -> MercadoPagoClient:
    return resolver.get_payment(PaymentProvider.MERCADOPAGO)

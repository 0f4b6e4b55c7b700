"""Shared fixtures: in-memory database, factories and a fake Mercado Pago."""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
for _name in (
    "REDIS_URL",
    "RATE_LIMIT_REDIS_URL",
    "RABBITMQ_URL",
    "EMAIL_SERVER",
    "MERCADOPAGO_WEBHOOK_SECRET",
    "MERCADOPAGO_WEBHOOK_URL",
):
    os.environ.pop(_name, None)

import uuid
from decimal import Decimal
from itertools import count

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models.event_listener  # noqa: F401
from core.date_helper import parse_instant
from core.get_db import Base
from email_notify.email_service import NotificationError
from fintechs.mercadopago import MercadoPagoPayment, PaymentProviderClientError
from models.enums import BookingStatus, PropertyStatus, RentType, UserRole
from models.models import Booking, Property, UserProfile
from services.pricing_service import price_stay

FUTURE_EXPIRY = "2099-01-01T00:00:00.000-03:00"
PAST_EXPIRY = "2020-01-01T00:00:00.000-03:00"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, expire_on_commit=False, autoflush=False, autocommit=False
    )


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def make_user(db, role: UserRole = UserRole.USER, **fields) -> UserProfile:
    user = UserProfile(
        id=uuid.uuid4(),
        full_name=fields.pop("full_name", "Test User"),
        email=fields.pop("email", f"user-{uuid.uuid4().hex[:8]}@example.com"),
        role=role,
        **fields,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_property(db, owner: UserProfile, **fields) -> Property:
    values = {
        "title": "Casa na praia",
        "rent_type": RentType.DAILY,
        "price": Decimal("200"),
        "cleaning_fee": Decimal("50"),
        "minimum_nights": 1,
        "guests_capacity": 4,
        "status": PropertyStatus.APPROVED,
        "verified": True,
        "address_text": "Rua das Flores, 10",
    }
    values.update(fields)
    prop = Property(owner_id=owner.id, **values)
    db.add(prop)
    await db.commit()
    await db.refresh(prop)
    return prop


async def make_booking(
    db,
    prop: Property,
    renter: UserProfile,
    check_in: str = "2024-06-01",
    check_out: str = "2024-06-10",
    status: BookingStatus = BookingStatus.PENDING_PAYMENT,
) -> Booking:
    quote = price_stay(
        prop.rent_type, check_in, check_out, prop.price, prop.cleaning_fee
    )
    booking = Booking(
        property_id=prop.id,
        renter_id=renter.id,
        owner_id=prop.owner_id,
        check_in_date=parse_instant(check_in),
        check_out_date=parse_instant(check_out),
        units=quote.units,
        guests=1,
        base_amount=quote.booking_base_amount,
        client_fee_amount=quote.client_fee,
        owner_fee_amount=quote.owner_fee,
        total_paid_by_renter=quote.total_paid_by_renter,
        owner_payout_amount=quote.owner_payout,
        status=status,
    )
    db.add(booking)
    await db.commit()
    await db.refresh(booking)
    return booking


@pytest_asyncio.fixture
async def owner(db):
    return await make_user(db, full_name="Ana Proprietária")


@pytest_asyncio.fixture
async def renter(db):
    return await make_user(db, full_name="Bruno Hóspede", email="bruno@example.com")


@pytest_asyncio.fixture
async def admin(db):
    return await make_user(db, role=UserRole.ADMIN, full_name="Admin")


@pytest_asyncio.fixture
async def listing(db, owner):
    return await make_property(db, owner)


@pytest_asyncio.fixture
async def booking(db, listing, renter):
    return await make_booking(db, listing, renter)


def pix_payload(
    payment_id: str,
    booking_id=None,
    status: str = "pending",
    amount=Decimal("1000"),
    expires: str = FUTURE_EXPIRY,
    email: str = "bruno@example.com",
    with_qr: bool = True,
) -> dict:
    reference = str(booking_id) if booking_id else ""
    return {
        "id": int(payment_id) if payment_id.isdigit() else payment_id,
        "status": status,
        "status_detail": "accredited" if status == "approved" else "pending_waiting_transfer",
        "payment_method_id": "pix",
        "transaction_amount": float(amount),
        "external_reference": reference,
        "metadata": {"booking_id": reference} if reference else {},
        "payer": {"email": email},
        "date_of_expiration": expires,
        "point_of_interaction": {
            "transaction_data": {
                "qr_code": "00020126580014br.gov.bcb.pix" if with_qr else "",
                "qr_code_base64": "iVBORw0KGgo=" if with_qr else "",
                "ticket_url": "https://www.mercadopago.com.br/payments/ticket",
            }
        },
    }


class FakeMercadoPago:
    """In-memory stand-in for ``MercadoPagoClient``."""

    def __init__(self):
        self.payments: dict[str, dict] = {}
        self.created: list[dict] = []
        self.lookups: list[str] = []
        self._ids = count(9000001)

    def add(self, booking_id=None, **fields) -> str:
        payment_id = str(next(self._ids))
        self.payments[payment_id] = pix_payload(payment_id, booking_id, **fields)
        return payment_id

    def set_status(self, payment_id: str, status: str):
        self.payments[payment_id]["status"] = status

    async def create_pix_payment(self, **kwargs) -> MercadoPagoPayment:
        self.created.append(kwargs)
        payment_id = self.add(kwargs["booking_id"], amount=kwargs["amount"])
        return MercadoPagoPayment.from_payload(self.payments[payment_id])

    async def get_payment(self, payment_id: str) -> MercadoPagoPayment:
        self.lookups.append(payment_id)
        if payment_id not in self.payments:
            raise PaymentProviderClientError(404, '{"message":"Payment not found"}')
        return MercadoPagoPayment.from_payload(self.payments[payment_id])


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def __call__(self, confirmation):
        if self.fail:
            raise NotificationError("SMTP unavailable")
        self.sent.append(confirmation)


@pytest.fixture
def provider():
    return FakeMercadoPago()


@pytest.fixture
def notifier():
    return RecordingNotifier()

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.date_helper import utcnow
from core.get_db import Base

from .enums import (
    BookingStatus,
    ConversationStatus,
    HostVerificationStatus,
    PaymentProvider,
    PropertyStatus,
    RentType,
    UserRole,
)

ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PRE_CHECKING,
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
)


def enum_column(enum_cls):
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


def money():
    return Numeric(12, 2)


class UserProfile(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    cpf: Mapped[Optional[str]] = mapped_column(String(11), nullable=True)
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole), nullable=False, default=UserRole.USER
    )
    host_verification_status: Mapped[HostVerificationStatus] = mapped_column(
        enum_column(HostVerificationStatus),
        nullable=False,
        default=HostVerificationStatus.NOT_STARTED,
    )
    host_verification_requested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    properties: Mapped[List["Property"]] = relationship(back_populates="owner")


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    rent_type: Mapped[RentType] = mapped_column(
        enum_column(RentType), nullable=False, default=RentType.DAILY
    )
    price: Mapped[Decimal] = mapped_column(money(), nullable=False)
    cleaning_fee: Mapped[Decimal] = mapped_column(money(), default=Decimal("0"))
    security_deposit: Mapped[Decimal] = mapped_column(money(), default=Decimal("0"))
    minimum_nights: Mapped[int] = mapped_column(Integer, default=1)

    guests_capacity: Mapped[int] = mapped_column(Integer, default=1)
    bedrooms: Mapped[int] = mapped_column(Integer, default=0)
    bathrooms: Mapped[int] = mapped_column(Integer, default=0)
    garage_spots: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[PropertyStatus] = mapped_column(
        enum_column(PropertyStatus), nullable=False, default=PropertyStatus.PENDING
    )
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    photos: Mapped[list] = mapped_column(JSON, default=list)

    lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    address_text: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    owner: Mapped["UserProfile"] = relationship(back_populates="properties")
    bookings: Mapped[List["Booking"]] = relationship(back_populates="property")

    __table_args__ = (Index("ix_properties_status_rent_type", "status", "rent_type"),)


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    renter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )

    check_in_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    check_out_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    guests: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # base_amount already includes the cleaning fee
    base_amount: Mapped[Decimal] = mapped_column(money(), nullable=False)
    client_fee_amount: Mapped[Decimal] = mapped_column(money(), nullable=False)
    owner_fee_amount: Mapped[Decimal] = mapped_column(money(), nullable=False)
    total_paid_by_renter: Mapped[Decimal] = mapped_column(money(), nullable=False)
    owner_payout_amount: Mapped[Decimal] = mapped_column(money(), nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        enum_column(BookingStatus),
        nullable=False,
        default=BookingStatus.PENDING_PAYMENT,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    property: Mapped["Property"] = relationship(back_populates="bookings")
    renter: Mapped["UserProfile"] = relationship(foreign_keys=[renter_id])
    transactions: Mapped[List["PaymentTransaction"]] = relationship(
        back_populates="booking"
    )

    __table_args__ = (
        Index("ix_bookings_property_status", "property_id", "status"),
    )


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider: Mapped[PaymentProvider] = mapped_column(
        enum_column(PaymentProvider),
        nullable=False,
        default=PaymentProvider.MERCADOPAGO,
    )
    provider_payment_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False
    )
    payment_method: Mapped[str] = mapped_column(String(32), default="pix")
    amount: Mapped[Decimal] = mapped_column(money(), nullable=False)

    # lower-cased mirror of the provider status, not an enum on our side
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    status_detail: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    payer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    qr_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    qr_code_base64: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ticket_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    raw_response: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    booking: Mapped["Booking"] = relationship(back_populates="transactions")


class ChatConversation(Base):
    __tablename__ = "chat_conversations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    renter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[ConversationStatus] = mapped_column(
        enum_column(ConversationStatus),
        nullable=False,
        default=ConversationStatus.OPEN,
    )
    last_message_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    booking: Mapped["Booking"] = relationship()
    messages: Mapped[List["ChatMessage"]] = relationship(
        back_populates="conversation", order_by="ChatMessage.created_at"
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("chat_conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    conversation: Mapped["ChatConversation"] = relationship(back_populates="messages")

    __table_args__ = (
        Index("ix_chat_messages_conversation_created", "conversation_id", "created_at"),
    )


class OwnerReview(Base):
    __tablename__ = "owner_reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    renter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

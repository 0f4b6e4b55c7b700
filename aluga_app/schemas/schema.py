import re
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from models.enums import (
    BookingStatus,
    ConversationStatus,
    HostVerificationStatus,
    PropertyStatus,
    RentType,
    UserRole,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Profiles


class UserProfileOut(ORMModel):
    id: uuid.UUID
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    cpf: Optional[str] = None
    birth_date: Optional[date] = None
    role: UserRole
    host_verification_status: HostVerificationStatus
    host_verification_requested_at: Optional[datetime] = None
    created_at: datetime


class UserProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = None
    cpf: Optional[str] = None
    birth_date: Optional[date] = None

    @field_validator("cpf")
    @classmethod
    def cpf_digits(cls, value):
        if value is None:
            return value
        digits = re.sub(r"\D", "", value)
        if len(digits) != 11:
            raise ValueError("CPF must have 11 digits")
        return digits


class HostVerificationUpdate(BaseModel):
    status: HostVerificationStatus


# Properties


class PropertyBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = None
    rent_type: RentType = RentType.DAILY
    price: Decimal = Field(..., gt=0)
    cleaning_fee: Decimal = Field(Decimal("0"), ge=0)
    security_deposit: Decimal = Field(Decimal("0"), ge=0)
    minimum_nights: int = Field(1, ge=1)
    guests_capacity: int = Field(1, ge=1)
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)
    garage_spots: int = Field(0, ge=0)
    photos: List[str] = Field(default_factory=list)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    address_text: Optional[str] = None
    postal_code: Optional[str] = None


class PropertyCreate(PropertyBase):
    pass


class PropertyUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    rent_type: Optional[RentType] = None
    price: Optional[Decimal] = Field(None, gt=0)
    cleaning_fee: Optional[Decimal] = Field(None, ge=0)
    security_deposit: Optional[Decimal] = Field(None, ge=0)
    minimum_nights: Optional[int] = Field(None, ge=1)
    guests_capacity: Optional[int] = Field(None, ge=1)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    garage_spots: Optional[int] = Field(None, ge=0)
    photos: Optional[List[str]] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    address_text: Optional[str] = None
    postal_code: Optional[str] = None


class PropertyOut(ORMModel, PropertyBase):
    id: uuid.UUID
    owner_id: uuid.UUID
    status: PropertyStatus
    verified: bool
    created_at: datetime
    updated_at: datetime


class PropertyModeration(BaseModel):
    status: Optional[PropertyStatus] = None
    verified: Optional[bool] = None


# Quotes and bookings


class QuoteOut(BaseModel):
    property_id: uuid.UUID
    rent_type: RentType
    check_in_date: datetime
    check_out_date: datetime
    nights: int
    units: int
    unit_price: Decimal
    base_amount: Decimal
    cleaning_fee: Decimal
    client_fee_amount: Decimal
    owner_fee_amount: Decimal
    total_paid_by_renter: Decimal
    owner_payout_amount: Decimal
    available: bool


class AvailabilityOut(BaseModel):
    property_id: uuid.UUID
    check_in_date: datetime
    check_out_date: datetime
    available: bool


class BookingCreate(BaseModel):
    property_id: uuid.UUID
    check_in_date: str
    check_out_date: str
    guests: int = Field(1, ge=1)


class BookingOut(ORMModel):
    id: uuid.UUID
    property_id: uuid.UUID
    renter_id: uuid.UUID
    owner_id: uuid.UUID
    check_in_date: datetime
    check_out_date: datetime
    units: int
    guests: int
    base_amount: Decimal
    client_fee_amount: Decimal
    owner_fee_amount: Decimal
    total_paid_by_renter: Decimal
    owner_payout_amount: Decimal
    status: BookingStatus
    created_at: datetime
    updated_at: datetime


class BookingTransition(BaseModel):
    status: BookingStatus


# Payments


class PixCreateRequest(BaseModel):
    booking_id: uuid.UUID
    payer_email: EmailStr
    payer_cpf: Optional[str] = None


class PixCheckRequest(BaseModel):
    booking_id: uuid.UUID
    payment_id: Optional[str] = None


class PixPaymentOut(BaseModel):
    booking_id: uuid.UUID
    booking_status: BookingStatus
    payment_id: str
    status: str
    status_detail: Optional[str] = None
    amount: Decimal
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    ticket_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    finalized: bool = False
    warning: Optional[str] = None


class WebhookResult(BaseModel):
    ok: bool = True
    ignored: bool = False
    reason: Optional[str] = None
    payment_id: Optional[str] = None
    booking_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    finalized: bool = False


# Chat


class ChatConversationOut(ORMModel):
    id: uuid.UUID
    booking_id: uuid.UUID
    property_id: uuid.UUID
    renter_id: uuid.UUID
    owner_id: uuid.UUID
    status: ConversationStatus
    last_message_at: Optional[datetime] = None
    created_at: datetime


class ChatConversationView(BaseModel):
    conversation: ChatConversationOut
    booking_status: BookingStatus
    unlocked: bool


class ChatMessageCreate(BaseModel):
    text: str = Field(..., min_length=1)


class ChatMessageOut(ORMModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: Optional[uuid.UUID] = None
    text: str
    is_system: bool
    created_at: datetime


class ConversationStatusUpdate(BaseModel):
    status: ConversationStatus


class SystemMessageCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=4000)


# Reviews


class OwnerReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    tags: List[str] = Field(default_factory=list)
    comment: Optional[str] = Field(None, max_length=2000)


class OwnerReviewOut(ORMModel):
    id: uuid.UUID
    booking_id: uuid.UUID
    property_id: uuid.UUID
    renter_id: uuid.UUID
    owner_id: uuid.UUID
    rating: int
    tags: List[str]
    comment: Optional[str] = None
    created_at: datetime


class HealthOut(BaseModel):
    status: Literal["ok"] = "ok"

from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class HostVerificationStatus(str, Enum):
    NOT_STARTED = "not_started"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class RentType(str, Enum):
    MONTHLY = "monthly"
    SEASONAL = "seasonal"
    DAILY = "daily"


class PropertyStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookingStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PRE_CHECKING = "pre_checking"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


class ConversationStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    BLOCKED = "blocked"


class PaymentProvider(str, Enum):
    MERCADOPAGO = "mercadopago"


class PaymentMethod(str, Enum):
    PIX = "pix"
    CARD = "card"


class BookingActor(str, Enum):
    RENTER = "renter"
    OWNER = "owner"
    ADMIN = "admin"
    PAYMENT = "payment"

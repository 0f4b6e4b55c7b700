import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from core.date_helper import parse_instant
from models.enums import RentType

CLIENT_FEE_RATE = Decimal("0.10")
OWNER_FEE_RATE = Decimal("0.04")
DAYS_PER_MONTH = 30
SECONDS_PER_DAY = 86400


class InvalidStayRange(ValueError):
    pass


@dataclass(frozen=True)
class PriceQuote:
    rent_type: RentType
    nights: int
    units: int
    unit_price: Decimal
    base: Decimal
    cleaning_fee: Decimal
    client_fee: Decimal
    owner_fee: Decimal
    total_paid_by_renter: Decimal
    owner_payout: Decimal

    @property
    def booking_base_amount(self) -> Decimal:
        """Stored ``base_amount`` of a booking: rental base plus cleaning fee."""
        return self.base + self.cleaning_fee


def round_currency(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def day_difference(check_in, check_out) -> int:
    start = parse_instant(check_in)
    end = parse_instant(check_out)
    if start is None or end is None or end <= start:
        return 0
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


def calculate_units(rent_type: RentType, check_in, check_out) -> int:
    days = day_difference(check_in, check_out)
    if days <= 0:
        return 0
    if RentType(rent_type) == RentType.MONTHLY:
        return max(1, math.ceil(days / DAYS_PER_MONTH))
    return max(1, days)


def price_stay(
    rent_type: RentType,
    check_in,
    check_out,
    unit_price,
    cleaning_fee=0,
) -> PriceQuote:
    units = calculate_units(rent_type, check_in, check_out)
    if units <= 0:
        raise InvalidStayRange("Check-out must be after check-in.")

    unit_price = Decimal(str(unit_price))
    cleaning_fee = Decimal(str(cleaning_fee or 0))
    base = unit_price * units
    client_fee = round_currency(base * CLIENT_FEE_RATE)
    owner_fee = round_currency(base * OWNER_FEE_RATE)

    return PriceQuote(
        rent_type=RentType(rent_type),
        nights=day_difference(check_in, check_out),
        units=units,
        unit_price=unit_price,
        base=base,
        cleaning_fee=cleaning_fee,
        client_fee=client_fee,
        owner_fee=owner_fee,
        total_paid_by_renter=base + cleaning_fee + client_fee,
        owner_payout=base + cleaning_fee - owner_fee,
    )

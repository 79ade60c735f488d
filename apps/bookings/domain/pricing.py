"""
Booking Pricing

Turns a property's pricing rules and a stay into an itemized breakdown.

Every amount is a Decimal rounded to the minor currency unit (cents) as soon
as it is produced, with round-half-to-even, so the same inputs always yield
the same breakdown. A booking keeps both the breakdown and the inputs it was
computed from; re-running the calculator on those inputs reproduces it.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation

from shared.domain.base import ValueObject
from shared.domain.value_objects import DateRange, quantize_money

from .exceptions import InvalidPricingInput

WEEKLY_DISCOUNT_MIN_NIGHTS = 7
MONTHLY_DISCOUNT_MIN_NIGHTS = 28
MONEY_PLACES = 2
RATE_PLACES = 4

HUNDRED = Decimal('100')
ZERO = Decimal('0')
ONE = Decimal('1')


def _decimal(value, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidPricingInput(f"{field_name} must be a number, got {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidPricingInput(f"{field_name} must be a number, got {value!r}")
    if not result.is_finite():
        raise InvalidPricingInput(f"{field_name} must be finite, got {value!r}")
    return result


def _check_places(value: Decimal, places: int, field_name: str):
    """Inputs are stored with ``places`` decimals; finer values would not reprice"""
    try:
        representable = value == value.quantize(Decimal(1).scaleb(-places))
    except InvalidOperation:
        representable = False
    if not representable:
        raise InvalidPricingInput(
            f"{field_name} allows at most {places} decimal places, got {value}"
        )


@dataclass(frozen=True)
class PricingRules(ValueObject):
    """
    Host-controlled pricing configuration of a property

    Discounts are percentages in [0, 100]; prices are in major units.
    """
    base_price_per_night: Decimal
    cleaning_fee: Decimal = ZERO
    weekly_discount_percent: Decimal = ZERO
    monthly_discount_percent: Decimal = ZERO

    def __post_init__(self):
        base = _decimal(self.base_price_per_night, 'base_price_per_night')
        cleaning = _decimal(self.cleaning_fee, 'cleaning_fee')
        weekly = _decimal(self.weekly_discount_percent, 'weekly_discount_percent')
        monthly = _decimal(self.monthly_discount_percent, 'monthly_discount_percent')

        if base < ZERO:
            raise InvalidPricingInput(f"base_price_per_night cannot be negative ({base})")
        if cleaning < ZERO:
            raise InvalidPricingInput(f"cleaning_fee cannot be negative ({cleaning})")
        for name, percent in (('weekly_discount_percent', weekly),
                              ('monthly_discount_percent', monthly)):
            if not ZERO <= percent <= HUNDRED:
                raise InvalidPricingInput(f"{name} must be within [0, 100], got {percent}")
        for name, value in (('base_price_per_night', base), ('cleaning_fee', cleaning),
                            ('weekly_discount_percent', weekly),
                            ('monthly_discount_percent', monthly)):
            _check_places(value, MONEY_PLACES, name)

        object.__setattr__(self, 'base_price_per_night', base)
        object.__setattr__(self, 'cleaning_fee', cleaning)
        object.__setattr__(self, 'weekly_discount_percent', weekly)
        object.__setattr__(self, 'monthly_discount_percent', monthly)

    def discount_for(self, nights: int) -> Decimal:
        """Length-of-stay discount; the monthly tier replaces the weekly one"""
        if nights >= MONTHLY_DISCOUNT_MIN_NIGHTS:
            return self.monthly_discount_percent
        if nights >= WEEKLY_DISCOUNT_MIN_NIGHTS:
            return self.weekly_discount_percent
        return ZERO


@dataclass(frozen=True)
class FeeSchedule(ValueObject):
    """Platform rates applied on top of the host's prices, each within [0, 1]"""
    guest_service_fee_rate: Decimal
    host_service_fee_rate: Decimal
    tax_rate: Decimal

    def __post_init__(self):
        for name in ('guest_service_fee_rate', 'host_service_fee_rate', 'tax_rate'):
            rate = _decimal(getattr(self, name), name)
            if not ZERO <= rate <= ONE:
                raise InvalidPricingInput(f"{name} must be within [0, 1], got {rate}")
            _check_places(rate, RATE_PLACES, name)
            object.__setattr__(self, name, rate)


@dataclass(frozen=True)
class PriceBreakdown(ValueObject):
    """Itemized price of a stay as charged to the guest and paid to the host"""
    nights: int
    nightly_rate: Decimal
    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    cleaning_fee: Decimal
    guest_service_fee: Decimal
    tax: Decimal
    total: Decimal
    host_payout: Decimal

    @property
    def discounted_subtotal(self) -> Decimal:
        return self.subtotal - self.discount_amount

    def to_dict(self) -> dict:
        return {
            key: (str(value) if isinstance(value, Decimal) else value)
            for key, value in asdict(self).items()
        }


def price_for_nights(rules: PricingRules, nights: int, fees: FeeSchedule) -> PriceBreakdown:
    """
    Price a stay of ``nights`` nights

    Raises:
        InvalidPricingInput: If nights < 1
    """
    if isinstance(nights, bool) or not isinstance(nights, int) or nights < 1:
        raise InvalidPricingInput(f"A stay must have at least one night, got {nights!r}")

    subtotal = quantize_money(rules.base_price_per_night * nights)
    discount_percent = rules.discount_for(nights)
    discount_amount = quantize_money(subtotal * discount_percent / HUNDRED)
    discounted_subtotal = subtotal - discount_amount

    cleaning_fee = quantize_money(rules.cleaning_fee)
    guest_service_fee = quantize_money(
        (discounted_subtotal + cleaning_fee) * fees.guest_service_fee_rate
    )
    tax = quantize_money(
        (discounted_subtotal + cleaning_fee + guest_service_fee) * fees.tax_rate
    )
    total = discounted_subtotal + cleaning_fee + guest_service_fee + tax
    # The host fee is levied on the gross total, not on the subtotal
    host_payout = quantize_money(total * (ONE - fees.host_service_fee_rate))
    nightly_rate = quantize_money(discounted_subtotal / nights)

    return PriceBreakdown(
        nights=nights,
        nightly_rate=nightly_rate,
        subtotal=subtotal,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        cleaning_fee=cleaning_fee,
        guest_service_fee=guest_service_fee,
        tax=tax,
        total=quantize_money(total),
        host_payout=host_payout,
    )


def calculate_price(rules: PricingRules, stay: DateRange, fees: FeeSchedule) -> PriceBreakdown:
    """Price the nights of ``stay`` (see price_for_nights)"""
    return price_for_nights(rules, stay.duration(), fees)

import calendar
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from syncpay.models.payment_model import BillingCycle

YEARLY_DISCOUNT_FACTOR = Decimal("0.8")
MONTHS_PER_YEAR = 12
# The gateway takes amounts in the currency's sub-unit (paise for INR).
GATEWAY_SUBUNITS_PER_UNIT = 100


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def compute_amount(monthly_price, billing_cycle: str) -> Decimal:
    """
    Chargeable amount for one billing period.

    Yearly pricing applies a flat 20% discount before annualizing and rounds to
    the nearest whole unit, halves away from zero (999 -> 9590.4 -> 9590).
    """
    price = _as_decimal(monthly_price)
    if billing_cycle == BillingCycle.MONTHLY:
        return price
    if billing_cycle == BillingCycle.YEARLY:
        raw = price * YEARLY_DISCOUNT_FACTOR * MONTHS_PER_YEAR
        return raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    raise ValueError(f"Unknown billing cycle: {billing_cycle!r}")


def to_gateway_amount(amount) -> int:
    subunits = _as_decimal(amount) * GATEWAY_SUBUNITS_PER_UNIT
    if subunits != subunits.to_integral_value():
        raise ValueError(f"Amount {amount} has more precision than the gateway sub-unit")
    return int(subunits)


def from_gateway_amount(subunits: int) -> Decimal:
    return Decimal(subunits) / GATEWAY_SUBUNITS_PER_UNIT


def add_months(base: datetime, months: int) -> datetime:
    month_index = base.month - 1 + months
    year = base.year + (month_index // 12)
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def period_end_for(start: datetime, billing_cycle: str) -> datetime:
    if billing_cycle == BillingCycle.YEARLY:
        return add_months(start, MONTHS_PER_YEAR)
    if billing_cycle == BillingCycle.MONTHLY:
        return add_months(start, 1)
    raise ValueError(f"Unknown billing cycle: {billing_cycle!r}")

"""
Booking price calculation and cancellation refund policy.

Both are pure functions of their inputs so they can be quoted before a
booking exists and re-run on date changes.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Union

from roomlink.core.constants import (
    FULL_REFUND_PERCENT,
    MONEY_QUANTUM,
    MONTHLY_DISCOUNT_MIN_NIGHTS,
    PARTIAL_REFUND_MIN_DAYS,
    PARTIAL_REFUND_PERCENT,
    SERVICE_FEE_RATE,
    TAX_RATE,
    WEEKLY_DISCOUNT_MIN_NIGHTS,
)
from roomlink.core.exceptions import InvalidDateRangeError
from roomlink.models.enums import CancellationPolicy
from roomlink.utils.datetime_utils import count_nights, days_between

Number = Union[Decimal, int, float, str]

_HUNDRED = Decimal("100")


def _money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def _decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class PricingBreakdown:
    nights: int
    price_per_night: Decimal
    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    service_fee: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def select_discount(nights: int, weekly_discount: Number, monthly_discount: Number) -> Decimal:
    """
    Pick the single discount tier for a stay length.

    Monthly applies from 30 nights and wins over weekly; weekly applies from
    7 nights. A tier configured as 0 does not apply.
    """
    weekly = _decimal(weekly_discount or 0)
    monthly = _decimal(monthly_discount or 0)
    if nights >= MONTHLY_DISCOUNT_MIN_NIGHTS and monthly > 0:
        return monthly
    if nights >= WEEKLY_DISCOUNT_MIN_NIGHTS and weekly > 0:
        return weekly
    return Decimal("0")


def calculate_pricing(
    price_per_night: Number,
    check_in: datetime,
    check_out: datetime,
    number_of_rooms: int = 1,
    weekly_discount: Number = 0,
    monthly_discount: Number = 0,
) -> PricingBreakdown:
    """
    Price a stay.

    subtotal = price x nights x rooms, minus the tier discount, plus a 5 %
    service fee on the net amount and 8 % tax on net + fee. Each component
    is rounded to cents.
    """
    if check_out <= check_in:
        raise InvalidDateRangeError(check_in, check_out)

    nights = count_nights(check_in, check_out)
    price = _decimal(price_per_night)

    subtotal = _money(price * nights * number_of_rooms)
    discount_percent = select_discount(nights, weekly_discount, monthly_discount)
    discount_amount = _money(subtotal * discount_percent / _HUNDRED)
    net_amount = subtotal - discount_amount
    service_fee = _money(net_amount * SERVICE_FEE_RATE)
    tax = _money((net_amount + service_fee) * TAX_RATE)
    total = net_amount + service_fee + tax

    return PricingBreakdown(
        nights=nights,
        price_per_night=_money(price),
        subtotal=subtotal,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        net_amount=net_amount,
        service_fee=service_fee,
        tax=tax,
        total=total,
    )


def refund_percentage(
    now: datetime,
    check_in: datetime,
    cancellation_days: int,
    policy: CancellationPolicy = CancellationPolicy.MODERATE,
) -> int:
    """
    Refund share for a cancellation made at ``now``.

    - Non-refundable policy: 0
    - at least ``cancellation_days`` before check-in: 100
    - at least one day before check-in: 50
    - later than that: 0
    """
    if policy == CancellationPolicy.NON_REFUNDABLE:
        return 0

    days_before = days_between(now, check_in)
    if days_before >= cancellation_days:
        return FULL_REFUND_PERCENT
    if days_before >= PARTIAL_REFUND_MIN_DAYS:
        return PARTIAL_REFUND_PERCENT
    return 0


def refund_amount(total: Number, percentage: int) -> Decimal:
    return _money(_decimal(total) * Decimal(percentage) / _HUNDRED)

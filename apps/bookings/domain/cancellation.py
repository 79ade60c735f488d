"""
Cancellation Policies

The policy catalog is fixed; hosts pick one of its entries for a listing.
compute_refund() decides how much of the guest-paid total is returned.

Rules, in order:
1. Grace period: cancelled within 48 hours of the request and before
   check-in -> 100%, whatever the policy says.
2. Otherwise the policy refund applies only if check-in is at least
   ``cutoff_hours`` away; later cancellations get nothing.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict

from shared.domain.base import ValueObject
from shared.domain.value_objects import quantize_money

from .exceptions import InvalidCancellation, UnknownCancellationPolicy

DEFAULT_GRACE_PERIOD = timedelta(hours=48)
HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class CancellationPolicy(ValueObject):
    id: str
    name: str
    description: str
    refund_percentage: int
    cutoff_hours: int


FLEXIBLE = CancellationPolicy(
    id='flexible',
    name='Flexible',
    description='Full refund up to 24 hours before check-in',
    refund_percentage=100,
    cutoff_hours=24,
)
MODERATE = CancellationPolicy(
    id='moderate',
    name='Moderate',
    description='Full refund up to 5 days before check-in',
    refund_percentage=100,
    cutoff_hours=120,
)
STRICT = CancellationPolicy(
    id='strict',
    name='Strict',
    description='50% refund up to 1 week before check-in',
    refund_percentage=50,
    cutoff_hours=168,
)

POLICIES: Dict[str, CancellationPolicy] = {
    policy.id: policy for policy in (FLEXIBLE, MODERATE, STRICT)
}


def get_policy(policy_id: str) -> CancellationPolicy:
    try:
        return POLICIES[policy_id]
    except KeyError:
        raise UnknownCancellationPolicy(policy_id) from None


class RefundReason(Enum):
    GRACE_PERIOD = 'grace_period'
    BEFORE_CUTOFF = 'before_cutoff'
    AFTER_CUTOFF = 'after_cutoff'
    DECLINED = 'declined'


@dataclass(frozen=True)
class RefundDecision(ValueObject):
    refund_percent: int
    refund_amount: Decimal
    reason: RefundReason


def refund_amount_for(total: Decimal, percent: int) -> Decimal:
    """Share of ``total`` rounded half-to-even to the minor unit"""
    return quantize_money(Decimal(total) * Decimal(percent) / Decimal(100))


def full_refund(total: Decimal, reason: RefundReason) -> RefundDecision:
    return RefundDecision(100, refund_amount_for(total, 100), reason)


def compute_refund(
    policy: CancellationPolicy,
    created_at: datetime,
    check_in: datetime,
    cancelled_at: datetime,
    total: Decimal,
    *,
    check_out: datetime | None = None,
    grace_period: timedelta = DEFAULT_GRACE_PERIOD,
) -> RefundDecision:
    """
    Decide the refund for a cancellation at ``cancelled_at``

    Args:
        policy: Policy of the booking's property at request time
        created_at: When the booking was requested
        check_in: Start of the stay
        cancelled_at: When the cancellation happens
        total: Guest-paid total of the booking
        check_out: End of the stay; cancelling after it is rejected
        grace_period: Free-cancellation window after the request

    Raises:
        InvalidCancellation: If the stay has already concluded
    """
    if check_out is not None and cancelled_at > check_out:
        raise InvalidCancellation(
            f"Stay ended at {check_out.isoformat()}; "
            f"it cannot be cancelled at {cancelled_at.isoformat()}"
        )

    if cancelled_at - created_at <= grace_period and cancelled_at < check_in:
        return full_refund(total, RefundReason.GRACE_PERIOD)

    hours_until_check_in = (check_in - cancelled_at) / HOUR
    if hours_until_check_in >= policy.cutoff_hours:
        percent = policy.refund_percentage
        reason = RefundReason.BEFORE_CUTOFF
    else:
        percent = 0
        reason = RefundReason.AFTER_CUTOFF

    return RefundDecision(percent, refund_amount_for(total, percent), reason)

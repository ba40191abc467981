"""
billdesk/loyalty/redemption.py
-------------------------------
Pure validation of a loyalty-point redemption request.

    100 points = ₹10, redeemed in steps of 100, at least 100 at a time,
    and never worth more than half of the bill's original subtotal.

Rules are checked in order and the first failure wins. Nothing here
touches a session; the caller writes the returned discount/points pair
into the bill only when the result is ok.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Optional

from billdesk.errors import BillingError, ErrorCode, RedemptionFailure
from billdesk.utils.numbers import ZERO, non_negative, to_decimal


CONVERSION_RATE     = Decimal('0.1')   # currency per point
MIN_REDEEM          = 100
REDEEM_STEP         = 100
MAX_REDEEM_FRACTION = Decimal('0.5')   # of the original subtotal


@dataclass(frozen=True)
class RedemptionResult:
    discount_amount: Decimal = ZERO
    points_redeemed: int = 0
    failure:         Optional[RedemptionFailure] = None
    message:         str = ''
    max_points:      int = 0   # largest request that would pass every rule

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def error(self) -> Optional[BillingError]:
        if self.ok:
            return None
        return BillingError(ErrorCode.INVALID_REDEMPTION, self.message)

    def to_dict(self) -> dict:
        return {
            'ok':             self.ok,
            'discountAmount': str(self.discount_amount),
            'pointsRedeemed': self.points_redeemed,
            'reason':         self.failure.value if self.failure else None,
            'message':        self.message,
            'maxPoints':      self.max_points,
        }


def _as_points(value) -> int:
    """Whole points; fractions are truncated, garbage reads as 0."""
    return int(to_decimal(value))


def max_redeemable_points(available_points, subtotal) -> int:
    """
    Largest point count that passes every rule for this balance and
    subtotal: capped by the balance and by half the subtotal, rounded
    down to a whole step. Below the minimum this is 0.
    """
    available = max(0, _as_points(available_points))
    cap_value = non_negative(subtotal) * MAX_REDEEM_FRACTION
    cap_points = int((cap_value / CONVERSION_RATE).to_integral_value(rounding=ROUND_FLOOR))

    best = min(available, cap_points)
    best -= best % REDEEM_STEP
    return best if best >= MIN_REDEEM else 0


def validate_redemption(requested_points, available_points, subtotal) -> RedemptionResult:
    """
    Validate a redemption of `requested_points` against the customer's
    balance and the bill's original (pre-loyalty) subtotal.

    Zero is always valid and means "clear the loyalty discount".
    """
    requested  = _as_points(requested_points)
    available  = max(0, _as_points(available_points))
    max_points = max_redeemable_points(available, subtotal)

    if requested == 0:
        return RedemptionResult(max_points=max_points)

    if requested < MIN_REDEEM:
        return RedemptionResult(
            failure=RedemptionFailure.BELOW_MINIMUM,
            message=f'Minimum redemption is {MIN_REDEEM} points.',
            max_points=max_points,
        )

    if requested % REDEEM_STEP != 0:
        return RedemptionResult(
            failure=RedemptionFailure.NOT_A_STEP_MULTIPLE,
            message=f'Points must be redeemed in multiples of {REDEEM_STEP}.',
            max_points=max_points,
        )

    if requested > available:
        return RedemptionResult(
            failure=RedemptionFailure.INSUFFICIENT_BALANCE,
            message=f'Insufficient balance: {available} points available.',
            max_points=max_points,
        )

    discount  = Decimal(requested) * CONVERSION_RATE
    cap_value = non_negative(subtotal) * MAX_REDEEM_FRACTION
    if discount > cap_value:
        return RedemptionResult(
            failure=RedemptionFailure.EXCEEDS_CAP,
            message=(
                f'Maximum loyalty discount allowed is ₹{cap_value:.0f} '
                f'(50% of subtotal). You can redeem up to {max_points} points.'
            ),
            max_points=max_points,
        )

    return RedemptionResult(
        discount_amount=discount,
        points_redeemed=requested,
        max_points=max_points,
    )

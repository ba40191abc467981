"""
billdesk/utils/numbers.py
--------------------------
Decimal coercion for values arriving from the catalog, the cashier's
keypad, or the Flask session.

A till must never stop producing a total mid-sale, so anything that
cannot be read as a finite number becomes Decimal('0') instead of
raising. Magnitudes too large to multiply safely are treated the same way,
and rounding widens the context precision so a long amount still rounds.
Money crosses JSON as strings and is converted here, never
through float arithmetic.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext


ZERO = Decimal('0')
Q = Decimal('0.01')   # display quantize target

# Beyond this exponent a product of a few fields could overflow the context.
MAX_EXPONENT = 1000


def to_decimal(value, default: Decimal = ZERO) -> Decimal:
    """Parse `value` as a finite Decimal, or return `default`."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        parsed = value
    else:
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return default
    if not parsed.is_finite() or parsed.adjusted() > MAX_EXPONENT:
        return default
    return parsed


def non_negative(value) -> Decimal:
    """Like to_decimal, but negatives are treated as zero too."""
    parsed = to_decimal(value)
    return parsed if parsed > ZERO else ZERO


def parse_positive(value):
    """Return a Decimal > 0, or None when the input is unusable."""
    parsed = to_decimal(value, default=None)
    if parsed is None or parsed <= ZERO:
        return None
    return parsed


def _quantize(value: Decimal, exp: Decimal) -> Decimal:
    """quantize() with enough precision for every digit left of the point."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 4)
        return value.quantize(exp, rounding=ROUND_HALF_UP)


def round_half_away(value: Decimal) -> Decimal:
    """Round to whole currency units, .5 going away from zero."""
    return _quantize(value, Decimal('1'))


def money(value: Decimal) -> str:
    """Decimal → 2dp string for payloads and the session store."""
    return str(_quantize(value, Q))

"""
billdesk/errors.py
-------------------
Conditions the billing engine reports back to the cashier.

None of these are raised. Every one is a local, recoverable outcome
returned inside a result object; the session that produced it is left
exactly as it was before the rejected operation.
"""
import enum
from dataclasses import dataclass
from decimal import Decimal


class ErrorCode(str, enum.Enum):
    STOCK_EXHAUSTED    = 'StockExhausted'      # add rejected, nothing left
    STOCK_EXCEEDED     = 'StockExceeded'       # quantity edit above stock
    INVALID_REDEMPTION = 'InvalidRedemption'
    MISSING_CUSTOMER   = 'MissingCustomer'     # finalize needs a customer with a phone
    EMPTY_CART         = 'EmptyCart'


class RedemptionFailure(str, enum.Enum):
    BELOW_MINIMUM        = 'BelowMinimum'
    NOT_A_STEP_MULTIPLE  = 'NotAStepMultiple'
    INSUFFICIENT_BALANCE = 'InsufficientBalance'
    EXCEEDS_CAP          = 'ExceedsCap'


@dataclass(frozen=True)
class BillingError:
    code:    ErrorCode
    message: str

    def to_dict(self) -> dict:
        return {'code': self.code.value, 'message': self.message}


@dataclass(frozen=True)
class LowStockWarning:
    """Advisory only. The add goes through once the cashier confirms."""
    line_id:   str
    name:      str
    remaining: Decimal

    @property
    def message(self) -> str:
        return f'{self.name} has only {self.remaining} remaining.'

    def to_dict(self) -> dict:
        return {
            'lineId':    self.line_id,
            'remaining': str(self.remaining),
            'message':   self.message,
        }

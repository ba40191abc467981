"""
billdesk/billing/models.py
---------------------------
In-memory bill state.

A BillSession is one in-progress sale (one tab on the billing screen).
It holds raw inputs only — cart lines and bill-level adjustments — plus
a cached TotalsSnapshot that the session manager recomputes after every
change. The snapshot is never edited directly and is not serialised;
it is rebuilt from the inputs on load.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from billdesk.billing.cart import CartLine
from billdesk.billing.totals import (
    EMPTY_TOTALS, Jurisdiction, TaxMode, TotalsSnapshot, compute_totals,
)
from billdesk.customers.models import Customer
from billdesk.utils.numbers import ZERO, to_decimal


DEFAULT_PAYMENT_MODE = 'Cash'


class PaymentStatus(str, enum.Enum):
    PAID           = 'Paid'
    UNPAID         = 'Unpaid'
    PARTIALLY_PAID = 'Partially Paid'

    @classmethod
    def parse(cls, value) -> 'PaymentStatus':
        if isinstance(value, cls):
            return value
        key = str(value or '').replace('_', '').replace(' ', '').lower()
        for status in cls:
            if status.value.replace(' ', '').lower() == key:
                return status
        return cls.PAID


def derive_status(amount_received, total) -> PaymentStatus:
    """received ≤ 0 → Unpaid; received < total → Partially Paid; else Paid."""
    received = to_decimal(amount_received)
    if received <= ZERO:
        return PaymentStatus.UNPAID
    if received < to_decimal(total):
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PAID


@dataclass
class BillSession:
    """One open bill tab."""
    session_id:              int
    jurisdiction:            Jurisdiction = Jurisdiction.INTRA
    lines:                   List[CartLine] = field(default_factory=list)
    customer:                Optional[Customer] = None
    bill_discount:           Decimal = ZERO
    additional_charges:      Decimal = ZERO
    loyalty_points_discount: Decimal = ZERO
    loyalty_points_redeemed: int = 0
    payment_mode:            str = DEFAULT_PAYMENT_MODE
    amount_received:         Optional[Decimal] = None   # None = not entered
    status:                  PaymentStatus = PaymentStatus.PAID
    remarks:                 str = ''
    original_invoice_id:     Optional[str] = None
    totals:                  TotalsSnapshot = EMPTY_TOTALS

    # ── Computed helpers ──────────────────────────────────────────
    @property
    def is_editing(self) -> bool:
        """True when this tab re-opens a stored invoice."""
        return self.original_invoice_id is not None

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def payment_status(self) -> PaymentStatus:
        """
        Status to record on finalize. Once an amount has been entered it
        decides the status; otherwise the cashier's choice stands.
        """
        if self.amount_received is None:
            return self.status
        return derive_status(self.amount_received, self.totals.rounded_total)

    def recompute(self, tax_mode: TaxMode) -> TotalsSnapshot:
        self.totals = compute_totals(
            self.lines,
            bill_discount=self.bill_discount,
            additional_charges=self.additional_charges,
            loyalty_points_discount=self.loyalty_points_discount,
            jurisdiction=self.jurisdiction,
            tax_mode=tax_mode,
        )
        return self.totals

    # ── Serialisation (tab store) ─────────────────────────────────
    def to_dict(self) -> dict:
        """JSON-safe state without the snapshot; money kept as strings."""
        return {
            'id':                    self.session_id,
            'lines':                 [line.to_dict() for line in self.lines],
            'customer':              self.customer.to_dict() if self.customer else None,
            'billDiscount':          str(self.bill_discount),
            'additionalCharges':     str(self.additional_charges),
            'loyaltyPointsDiscount': str(self.loyalty_points_discount),
            'loyaltyPointsRedeemed': self.loyalty_points_redeemed,
            'taxType':               self.jurisdiction.value,
            'paymentMode':           self.payment_mode,
            'amountReceived':        None if self.amount_received is None else str(self.amount_received),
            'status':                self.status.value,
            'remarks':               self.remarks,
            'originalInvoiceId':     self.original_invoice_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'BillSession':
        received = data.get('amountReceived')
        return cls(
            session_id=int(data['id']),
            jurisdiction=Jurisdiction.parse(data.get('taxType')),
            lines=[CartLine.from_dict(item) for item in data.get('lines', [])],
            customer=Customer.from_dict(data.get('customer')),
            bill_discount=to_decimal(data.get('billDiscount')),
            additional_charges=to_decimal(data.get('additionalCharges')),
            loyalty_points_discount=to_decimal(data.get('loyaltyPointsDiscount')),
            loyalty_points_redeemed=int(to_decimal(data.get('loyaltyPointsRedeemed'))),
            payment_mode=data.get('paymentMode') or DEFAULT_PAYMENT_MODE,
            amount_received=None if received in (None, '') else to_decimal(received),
            status=PaymentStatus.parse(data.get('status')),
            remarks=data.get('remarks') or '',
            original_invoice_id=data.get('originalInvoiceId'),
        )

    def __repr__(self):
        return f"<BillSession {self.session_id} lines={len(self.lines)} ₹{self.totals.rounded_total}>"

"""
billdesk/billing/sessions.py
-----------------------------
BillSessionManager — owns every open bill tab for one cashier and the
identity of the active one.

Guarantees
──────────
• There is always at least one session. Closing the last tab resets it
  (new id, empty cart, zeroed adjustments) instead of removing it.
• Exactly one session is active.
• Every change made through the manager recomputes that session's
  TotalsSnapshot before returning, so cart and totals never disagree.
  A rejected change leaves the session untouched.
• Only the session being changed is recomputed; the others can be read
  at any time (tab switcher, previews).

The tax mode and default jurisdiction come from configuration and are
handed to the totals engine explicitly on every recompute.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from billdesk.billing import cart as cart_ops
from billdesk.billing.cart import CartResult
from billdesk.billing.invoice import (
    FinalizeResult, build_finalize_payload, session_from_invoice,
)
from billdesk.billing.models import BillSession, PaymentStatus
from billdesk.billing.totals import Jurisdiction, TaxMode
from billdesk.customers.models import Customer
from billdesk.loyalty.redemption import RedemptionResult, validate_redemption
from billdesk.utils.numbers import ZERO, non_negative, to_decimal


logger = logging.getLogger(__name__)

ADJUSTMENT_KINDS = ('discount', 'loyalty', 'charges', 'remarks')


@dataclass(frozen=True)
class TabSummary:
    """Read-only row for the tab switcher."""
    session_id: int
    line_count: int
    total:      Decimal
    customer:   str
    active:     bool

    def to_dict(self) -> dict:
        return {
            'id':        self.session_id,
            'lineCount': self.line_count,
            'total':     str(self.total),
            'customer':  self.customer,
            'active':    self.active,
        }


class BillSessionManager:

    def __init__(self, tax_mode=TaxMode.EXCLUSIVE,
                 default_jurisdiction=Jurisdiction.INTRA):
        self.tax_mode = TaxMode.parse(tax_mode)
        self.default_jurisdiction = Jurisdiction.parse(default_jurisdiction)
        self._sessions: Dict[int, BillSession] = {}
        self._next_id = 1
        self.active_id: Optional[int] = None
        self.open()

    # ── Read ──────────────────────────────────────────────────────

    @property
    def sessions(self) -> List[BillSession]:
        """Sessions in tab order."""
        return list(self._sessions.values())

    @property
    def active(self) -> BillSession:
        return self._sessions[self.active_id]

    def get(self, session_id) -> Optional[BillSession]:
        return self._sessions.get(session_id)

    def __len__(self):
        return len(self._sessions)

    def summaries(self) -> List[TabSummary]:
        return [
            TabSummary(
                session_id=s.session_id,
                line_count=len(s.lines),
                total=s.totals.rounded_total,
                customer=s.customer.name if s.customer else '',
                active=s.session_id == self.active_id,
            )
            for s in self._sessions.values()
        ]

    # ── Lifecycle ─────────────────────────────────────────────────

    def _new_session(self) -> BillSession:
        session = BillSession(
            session_id=self._next_id,
            jurisdiction=self.default_jurisdiction,
        )
        self._next_id += 1
        session.recompute(self.tax_mode)
        return session

    def open(self) -> BillSession:
        """Append a fresh tab and make it active."""
        session = self._new_session()
        self._sessions[session.session_id] = session
        self.active_id = session.session_id
        logger.debug('Opened bill %s', session.session_id)
        return session

    def close(self, session_id) -> bool:
        """
        Close a tab. The last remaining tab is reset in place instead.
        If the closed tab was active, the last tab in order takes over.
        Returns False for an unknown id.
        """
        if session_id not in self._sessions:
            return False

        if len(self._sessions) == 1:
            fresh = self._new_session()
            self._sessions = {fresh.session_id: fresh}
            self.active_id = fresh.session_id
            logger.debug('Reset last bill %s → %s', session_id, fresh.session_id)
            return True

        del self._sessions[session_id]
        if self.active_id == session_id:
            self.active_id = list(self._sessions)[-1]
        logger.debug('Closed bill %s (active: %s)', session_id, self.active_id)
        return True

    def activate(self, session_id) -> bool:
        """Switch the active tab. Each tab keeps its own snapshot, so no recompute."""
        if session_id not in self._sessions:
            return False
        self.active_id = session_id
        return True

    def load_for_edit(self, invoice: dict) -> BillSession:
        """
        Replace every open tab with one session rebuilt from a stored
        invoice. `original_invoice_id` makes a later finalize update the
        stored record instead of creating a second one.
        """
        session = session_from_invoice(invoice, session_id=self._next_id,
                                       default_jurisdiction=self.default_jurisdiction)
        self._next_id += 1
        session.recompute(self.tax_mode)
        self._sessions = {session.session_id: session}
        self.active_id = session.session_id
        logger.debug('Loaded invoice %s into bill %s',
                     session.original_invoice_id, session.session_id)
        return session

    def complete(self, session_id) -> bool:
        """Called once a bill has been handed off; closes (or resets) its tab."""
        return self.close(session_id)

    def finalize(self, now=None) -> FinalizeResult:
        """
        Build the finalize payload for the active bill. On success the
        tab is completed; when blocked (empty cart, no customer) the
        session is left as it was.
        """
        session = self.active
        result = build_finalize_payload(session, self.tax_mode, now=now)
        if result.ok:
            self.complete(session.session_id)
        return result

    def set_tax_mode(self, tax_mode) -> None:
        """Settings changed: every tab's snapshot depends on the mode."""
        self.tax_mode = TaxMode.parse(tax_mode, default=self.tax_mode)
        for session in self._sessions.values():
            session.recompute(self.tax_mode)

    # ── Cart changes (active session) ─────────────────────────────

    def _after(self, result: CartResult) -> CartResult:
        if result.changed:
            self.active.recompute(self.tax_mode)
            self._recheck_redemption(self.active)
        return result

    def _recheck_redemption(self, session: BillSession) -> None:
        """
        A cart change can shrink the subtotal under an earlier redemption.
        If the redeemed points no longer pass validation, drop the pair.
        """
        if not session.loyalty_points_redeemed:
            return
        available = session.customer.loyalty_points if session.customer else 0
        check = validate_redemption(session.loyalty_points_redeemed, available,
                                    session.totals.original_subtotal)
        if check.ok:
            return
        logger.debug('Dropped %s redeemed points on bill %s (%s)',
                     session.loyalty_points_redeemed, session.session_id, check.failure.value)
        session.loyalty_points_discount = ZERO
        session.loyalty_points_redeemed = 0
        session.recompute(self.tax_mode)

    def add_line(self, product, variant=None, confirmed: bool = False) -> CartResult:
        return self._after(cart_ops.add_line(self.active.lines, product, variant, confirmed))

    def set_quantity(self, line_id, new_qty, available_stock=None) -> CartResult:
        return self._after(cart_ops.set_quantity(self.active.lines, line_id, new_qty, available_stock))

    def remove_line(self, line_id) -> CartResult:
        return self._after(cart_ops.remove_line(self.active.lines, line_id))

    def apply_line_discount(self, line_id, amount, is_percent: bool = False) -> CartResult:
        return self._after(cart_ops.apply_line_discount(self.active.lines, line_id, amount, is_percent))

    def add_scanned(self, products: Iterable) -> List[CartResult]:
        """
        Add a batch of scanned products, one unit each. Scans are taken
        as confirmed; rejected scans are reported and the rest still go in.
        """
        results = []
        for product in products:
            results.append(self.add_line(product, confirmed=True))
        return results

    # ── Bill-level adjustments (active session) ───────────────────

    def apply_bill_discount(self, value, is_percent: bool = False) -> BillSession:
        """
        Store the bill discount as an absolute amount. A percentage is
        converted once, against the currently displayed taxable subtotal.
        """
        session = self.active
        amount = non_negative(value)
        if is_percent:
            amount = session.totals.taxable_subtotal * amount / Decimal('100')
        session.bill_discount = amount
        session.recompute(self.tax_mode)
        return session

    def set_additional_charges(self, amount) -> BillSession:
        session = self.active
        session.additional_charges = non_negative(amount)
        session.recompute(self.tax_mode)
        return session

    def redeem_points(self, requested_points) -> RedemptionResult:
        """
        Validate and apply a redemption against the attached customer's
        balance and the bill's original subtotal. Zero clears it.
        """
        session = self.active
        available = session.customer.loyalty_points if session.customer else 0
        result = validate_redemption(requested_points, available,
                                     session.totals.original_subtotal)
        if not result.ok:
            return result

        session.loyalty_points_discount = result.discount_amount
        session.loyalty_points_redeemed = result.points_redeemed
        session.recompute(self.tax_mode)
        return result

    def clear_adjustment(self, kind: str) -> bool:
        session = self.active
        if kind == 'discount':
            session.bill_discount = ZERO
        elif kind == 'loyalty':
            session.loyalty_points_discount = ZERO
            session.loyalty_points_redeemed = 0
        elif kind == 'charges':
            session.additional_charges = ZERO
        elif kind == 'remarks':
            session.remarks = ''
        else:
            return False
        session.recompute(self.tax_mode)
        return True

    def set_jurisdiction(self, jurisdiction) -> BillSession:
        session = self.active
        session.jurisdiction = Jurisdiction.parse(jurisdiction, default=session.jurisdiction)
        session.recompute(self.tax_mode)
        return session

    def attach_customer(self, customer: Optional[Customer]) -> BillSession:
        """
        Attach (or detach with None) a customer. A redemption made
        against a different customer's balance is dropped.
        """
        session = self.active
        previous = session.customer
        if previous is not None and (customer is None or customer.id != previous.id):
            session.loyalty_points_discount = ZERO
            session.loyalty_points_redeemed = 0
        session.customer = customer
        session.recompute(self.tax_mode)
        return session

    def set_payment(self, mode=None, amount_received=None, status=None) -> BillSession:
        session = self.active
        if mode:
            session.payment_mode = str(mode)
        if amount_received is not None:
            session.amount_received = None if amount_received == '' else to_decimal(amount_received)
        if status is not None:
            session.status = PaymentStatus.parse(status)
        return session

    def set_remarks(self, remarks) -> BillSession:
        session = self.active
        session.remarks = str(remarks or '')
        return session

    # ── Serialisation (tab store) ─────────────────────────────────

    def to_dict(self) -> dict:
        return {
            'taxMode':  self.tax_mode.value,
            'taxType':  self.default_jurisdiction.value,
            'nextId':   self._next_id,
            'activeId': self.active_id,
            'bills':    [s.to_dict() for s in self._sessions.values()],
        }

    @classmethod
    def from_dict(cls, data: Optional[dict], tax_mode=None,
                  default_jurisdiction=None) -> 'BillSessionManager':
        """
        Rebuild a manager from stored state. Snapshots are recomputed,
        never read back. `tax_mode`/`default_jurisdiction` override the
        stored values (configuration wins over a stale cookie).
        """
        data = data or {}
        manager = cls(
            tax_mode=tax_mode or data.get('taxMode'),
            default_jurisdiction=default_jurisdiction or data.get('taxType'),
        )
        bills = [BillSession.from_dict(item) for item in data.get('bills', [])]
        if not bills:
            return manager

        manager._sessions = {b.session_id: b for b in bills}
        for session in bills:
            session.recompute(manager.tax_mode)
        highest = max(manager._sessions)
        manager._next_id = max(int(data.get('nextId') or 0), highest + 1)
        active_id = data.get('activeId')
        manager.active_id = active_id if active_id in manager._sessions else bills[-1].session_id
        return manager

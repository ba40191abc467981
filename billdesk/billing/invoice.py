"""
billdesk/billing/invoice.py
----------------------------
The two data contracts a bill has with the outside world.

Outbound
────────
build_finalize_payload()  → dict handed to whatever stores invoices.
build_print_payload()     → dict handed to receipt/preview renderers.

Both read a BillSession and its cached snapshot; neither mutates it.

Finalize is gated: an empty cart is refused first, then a bill with no
customer phone number (the screen must capture a customer and retry).

Inbound
───────
session_from_invoice() rebuilds an editable BillSession from a stored
invoice in the finalize format. The stored id is kept as
`original_invoice_id` so saving again updates that record.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from billdesk.billing.cart import CartLine, make_line_id
from billdesk.billing.models import DEFAULT_PAYMENT_MODE, BillSession, PaymentStatus
from billdesk.billing.totals import Jurisdiction, TaxMode, line_taxable_value
from billdesk.catalog.models import DEFAULT_UNIT
from billdesk.customers.models import Customer
from billdesk.errors import BillingError, ErrorCode
from billdesk.utils.numbers import ZERO, money, non_negative, to_decimal


@dataclass(frozen=True)
class FinalizeResult:
    payload: Optional[dict] = None
    error:   Optional[BillingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def check_finalize(session: BillSession) -> Optional[BillingError]:
    """Return the condition blocking finalize, or None when it may proceed."""
    if session.is_empty:
        return BillingError(ErrorCode.EMPTY_CART,
                            'Cart is empty. Add products before completing a sale.')
    if session.customer is None or not session.customer.has_phone:
        return BillingError(ErrorCode.MISSING_CUSTOMER,
                            'Customer details with a phone number are required.')
    return None


def _item_payload(line: CartLine, tax_mode: TaxMode) -> dict:
    variant_id = line.line_id if line.variant_name else None
    return {
        'productId':    line.product_ref,
        'variantId':    variant_id,
        'variantName':  line.variant_name,
        'name':         line.name,
        'quantity':     str(line.quantity),
        'price':        money(line.unit_price),
        'taxableValue': money(line_taxable_value(line, tax_mode)),
        'total':        money(line.line_total),
        'taxRate':      str(line.tax_rate),
        'hsn':          line.hsn,
        'unit':         line.unit,
    }


def build_finalize_payload(session: BillSession, tax_mode: TaxMode,
                           now: Optional[datetime] = None) -> FinalizeResult:
    """
    Build the payload that records this bill.

    `status` is derived from amountReceived vs total whenever an amount
    was entered. Loyalty points earned come from the snapshot, i.e. the
    pre-discount subtotal.
    """
    blocked = check_finalize(session)
    if blocked is not None:
        return FinalizeResult(error=blocked)

    totals   = session.totals
    customer = session.customer
    received = session.amount_received if session.amount_received is not None else ZERO

    payload = {
        'customerId':            customer.id,
        'customerName':          customer.name,
        'date':                  (now or datetime.now()).isoformat(),
        'items': [
            _item_payload(line, tax_mode)
            for line in session.lines
            if line.quantity > ZERO
        ],
        'grossTotal':            money(totals.gross_total),
        'itemDiscount':          money(totals.item_discount_total),
        'subtotal':              money(totals.taxable_subtotal),
        'tax':                   money(totals.tax_total),
        'discount':              money(totals.bill_discount),
        'additionalCharges':     money(totals.additional_charges),
        'roundOff':              money(totals.round_off),
        'total':                 str(totals.rounded_total),
        'paymentMethod':         session.payment_mode,
        'status':                session.payment_status.value,
        'internalNotes':         session.remarks,
        'amountReceived':        money(received),
        'taxType':               session.jurisdiction.value,
        'loyaltyPointsRedeemed': session.loyalty_points_redeemed,
        'loyaltyPointsDiscount': money(session.loyalty_points_discount),
        'loyaltyPointsEarned':   totals.points_earned,
    }
    if session.original_invoice_id is not None:
        payload['id'] = session.original_invoice_id

    return FinalizeResult(payload=payload)


def build_print_payload(session: BillSession, tax_mode: TaxMode) -> dict:
    """Everything a renderer needs for a preview or receipt."""
    return {
        'billId':   session.session_id,
        'lines':    [line.to_dict() for line in session.lines],
        'totals':   session.totals.to_dict(),
        'customer': session.customer.to_dict() if session.customer else None,
        'taxType':  session.jurisdiction.value,
        'taxMode':  tax_mode.value,
        'remarks':  session.remarks,
    }


# ── Stored invoice → editable session ─────────────────────────────

def _line_from_item(item: dict) -> CartLine:
    product_ref  = str(item.get('productId') or item.get('id') or '')
    variant_name = item.get('variantName') or None
    line_id      = item.get('variantId') or make_line_id(product_ref, variant_name)

    price    = to_decimal(item.get('price', item.get('sellingPrice')))
    quantity = to_decimal(item.get('quantity'), default=Decimal('1'))
    if quantity <= ZERO:
        quantity = Decimal('1')

    # Stored totals are price × qty − discount; recover the discount.
    discount = ZERO
    if item.get('total') not in (None, ''):
        discount = non_negative(price * quantity - to_decimal(item['total']))
    elif item.get('discount') not in (None, ''):
        discount = non_negative(item['discount'])

    return CartLine(
        line_id=str(line_id),
        product_ref=product_ref,
        name=item.get('name', ''),
        unit_price=price,
        quantity=quantity,
        line_discount=discount,
        tax_rate=to_decimal(item.get('taxRate')),
        unit=item.get('unit') or DEFAULT_UNIT,
        variant_name=variant_name,
        hsn=item.get('hsn') or '',
    )


def _customer_from_invoice(invoice: dict) -> Optional[Customer]:
    if isinstance(invoice.get('customer'), dict):
        return Customer.from_dict(invoice['customer'])
    if not invoice.get('customerId') and not invoice.get('customerName'):
        return None
    return Customer.from_dict({
        'id':            invoice.get('customerId'),
        'name':          invoice.get('customerName'),
        'phone':         invoice.get('customerPhone'),
        'loyaltyPoints': invoice.get('customerLoyaltyPoints'),
    })


def session_from_invoice(invoice: dict, session_id: int,
                         default_jurisdiction=Jurisdiction.INTRA) -> BillSession:
    """Map a stored invoice (finalize format) back onto a BillSession."""
    original_id = invoice.get('id') or invoice.get('invoiceNumber')
    received    = invoice.get('amountReceived')
    redeemed    = int(to_decimal(invoice.get('loyaltyPointsRedeemed')))
    loyalty     = non_negative(invoice.get('loyaltyPointsDiscount'))
    if redeemed <= 0 or loyalty <= ZERO:
        redeemed, loyalty = 0, ZERO

    return BillSession(
        session_id=session_id,
        jurisdiction=Jurisdiction.parse(invoice.get('taxType'), default=default_jurisdiction),
        lines=[_line_from_item(item) for item in invoice.get('items') or []],
        customer=_customer_from_invoice(invoice),
        bill_discount=non_negative(invoice.get('discount')),
        additional_charges=non_negative(invoice.get('additionalCharges')),
        loyalty_points_discount=loyalty,
        loyalty_points_redeemed=redeemed,
        payment_mode=invoice.get('paymentMethod') or DEFAULT_PAYMENT_MODE,
        amount_received=None if received in (None, '') else to_decimal(received),
        status=PaymentStatus.parse(invoice.get('status')),
        remarks=invoice.get('internalNotes') or '',
        original_invoice_id=None if original_id in (None, '') else str(original_id),
    )

"""
billdesk/billing/cart.py
-------------------------
Cart lines and the rules for changing them.

A cart is a plain ordered list of CartLine objects owned by one
BillSession. The functions below mutate that list in place and report
what happened through a CartResult; a rejected change never touches
the list. Totals are not computed here — the session manager
recomputes them after every successful change.

Line identity:
    "<product id>"                 plain product
    "<product id>-<variant name>"  product sold as a specific variant

so two variants of one product are always two separate lines.

All money and quantities are Decimal; fractional quantities (0.5 kg)
are valid.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Union

from billdesk.catalog.models import DEFAULT_UNIT, Product, Variant
from billdesk.errors import BillingError, ErrorCode, LowStockWarning
from billdesk.utils.numbers import (
    ZERO, money, non_negative, parse_positive, to_decimal,
)


@dataclass
class CartLine:
    """One product/variant entry in a cart."""
    line_id:       str
    product_ref:   str
    name:          str
    unit_price:    Decimal
    quantity:      Decimal = Decimal('1')
    line_discount: Decimal = ZERO
    tax_rate:      Decimal = ZERO
    unit:          str = DEFAULT_UNIT
    variant_name:  Optional[str] = None
    hsn:           str = ''

    @property
    def gross(self) -> Decimal:
        """unit_price × quantity, with unusable numbers read as zero."""
        return non_negative(self.unit_price) * non_negative(self.quantity)

    @property
    def line_total(self) -> Decimal:
        return max(ZERO, self.gross) - non_negative(self.line_discount)

    def to_dict(self) -> dict:
        """JSON-safe form; Decimals travel as strings."""
        return {
            'lineId':       self.line_id,
            'productId':    self.product_ref,
            'variantName':  self.variant_name,
            'name':         self.name,
            'price':        str(self.unit_price),
            'quantity':     str(self.quantity),
            'discount':     str(self.line_discount),
            'taxRate':      str(self.tax_rate),
            'unit':         self.unit,
            'hsn':          self.hsn,
            'total':        money(self.line_total),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CartLine':
        return cls(
            line_id=str(data['lineId']),
            product_ref=str(data.get('productId', data['lineId'])),
            name=data.get('name', ''),
            unit_price=to_decimal(data.get('price')),
            quantity=to_decimal(data.get('quantity'), default=Decimal('1')),
            line_discount=to_decimal(data.get('discount')),
            tax_rate=to_decimal(data.get('taxRate')),
            unit=data.get('unit') or DEFAULT_UNIT,
            variant_name=data.get('variantName'),
            hsn=data.get('hsn') or '',
        )


@dataclass
class CartResult:
    """
    Outcome of one cart change.

    changed  — the cart was modified
    error    — the change was rejected (cart untouched)
    warning  — low-stock advisory; when `changed` is False the caller
               must confirm and repeat the add
    """
    line:    Optional[CartLine] = None
    error:   Optional[BillingError] = None
    warning: Optional[LowStockWarning] = None
    changed: bool = False

    @property
    def needs_confirmation(self) -> bool:
        return self.warning is not None and not self.changed


# ── Identity & lookup ─────────────────────────────────────────────

def make_line_id(product_ref, variant_name: Optional[str] = None) -> str:
    if variant_name:
        return f'{product_ref}-{variant_name}'
    return str(product_ref)


def find_line(lines: List[CartLine], line_id: str) -> Optional[CartLine]:
    for line in lines:
        if line.line_id == line_id:
            return line
    return None


def resolve_variant(product: Product, variant: Union[Variant, str, None]) -> Optional[Variant]:
    """Accept a Variant or a variant name; unknown names become price-less variants."""
    if variant is None or isinstance(variant, Variant):
        return variant
    if not isinstance(variant, str):
        raise TypeError(f'Variant must be a name or a Variant, not {type(variant).__name__}')
    name = variant.strip()
    if not name:
        return None
    return product.variant_named(name) or Variant(name=name)


def resolve_stock(product: Product, variant: Optional[Variant] = None) -> Decimal:
    """
    Stock figure that limits a line.
    A variant that tracks its own stock uses it; otherwise the base
    product's stock applies to every variant.
    """
    if variant is not None and variant.tracks_stock:
        return to_decimal(variant.stock)
    return to_decimal(product.stock)


# ── Write ─────────────────────────────────────────────────────────

def add_line(lines: List[CartLine], product: Product, variant=None,
             confirmed: bool = False) -> CartResult:
    """
    Add one unit of `product` (optionally as `variant`) to the cart.

    If the line already exists its quantity goes up by one instead.
    Rejected with StockExhausted when there is no stock at all, and
    with StockExceeded when an increment would pass the stock figure.
    When the resulting quantity would use up the remaining stock (or
    stock is at/below the product's minimum), a LowStockWarning is
    returned and nothing changes unless `confirmed` is True.
    """
    variant      = resolve_variant(product, variant)
    variant_name = variant.name if variant else None
    line_id      = make_line_id(product.id, variant_name)
    stock        = resolve_stock(product, variant)

    if stock <= ZERO:
        return CartResult(error=BillingError(
            ErrorCode.STOCK_EXHAUSTED,
            f'"{product.name}" is out of stock.',
        ))

    existing  = find_line(lines, line_id)
    resulting = (existing.quantity if existing else ZERO) + 1

    if existing and resulting > stock:
        return CartResult(line=existing, error=BillingError(
            ErrorCode.STOCK_EXCEEDED,
            f'Stock quantity only {stock}. You can\'t add above this.',
        ))

    warning = None
    low_mark = product.min_stock is not None and stock <= product.min_stock
    if resulting >= stock or low_mark:
        warning = LowStockWarning(line_id=line_id, name=product.name, remaining=stock)
        if not confirmed:
            return CartResult(line=existing, warning=warning)

    if existing:
        existing.quantity = resulting
        return CartResult(line=existing, warning=warning, changed=True)

    if variant is not None and variant.price is not None:
        unit_price = variant.price
    else:
        unit_price = product.price

    line = CartLine(
        line_id=line_id,
        product_ref=str(product.id),
        name=f'{product.name} - {variant_name}' if variant_name else product.name,
        unit_price=unit_price,
        quantity=Decimal('1'),
        tax_rate=product.tax_rate,
        unit=product.unit,
        variant_name=variant_name,
        hsn=product.hsn,
    )
    lines.append(line)
    return CartResult(line=line, warning=warning, changed=True)


def set_quantity(lines: List[CartLine], line_id: str, new_qty,
                 available_stock=None) -> CartResult:
    """
    Set a line's quantity.

    Non-numeric, zero or negative quantities are ignored (use
    remove_line to delete). `available_stock` is the catalog figure
    resolved by the caller; None skips the stock check.
    """
    qty  = parse_positive(new_qty)
    line = find_line(lines, line_id)
    if qty is None or line is None:
        return CartResult(line=line)

    if available_stock is not None:
        stock = to_decimal(available_stock)
        if qty > stock:
            return CartResult(line=line, error=BillingError(
                ErrorCode.STOCK_EXCEEDED,
                f'Stock quantity only {stock}. You can\'t add above this.',
            ))

    line.quantity = qty
    return CartResult(line=line, changed=True)


def remove_line(lines: List[CartLine], line_id: str) -> CartResult:
    """Remove a line entirely. Unknown ids are ignored."""
    line = find_line(lines, line_id)
    if line is None:
        return CartResult()
    lines.remove(line)
    return CartResult(line=line, changed=True)


def apply_line_discount(lines: List[CartLine], line_id: str, amount,
                        is_percent: bool = False) -> CartResult:
    """
    Store an absolute discount on a line.
    A percentage is converted once, against unit_price × quantity.
    """
    line = find_line(lines, line_id)
    if line is None:
        return CartResult()

    value = non_negative(amount)
    if is_percent:
        value = line.gross * value / Decimal('100')

    line.line_discount = value
    return CartResult(line=line, changed=True)

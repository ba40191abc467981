"""
billdesk/catalog/validators.py
-------------------------------
Pure-Python validation for product payloads posted to the billing
endpoints. Returns a dict of field -> error_message.
An empty dict means the payload can be turned into a Product.

Only shape problems are reported here. Out-of-range numbers that slip
through (a negative price from a stale catalog) are zeroed later by
the totals engine rather than blocking the sale.
"""
from decimal import Decimal, InvalidOperation


def _is_number(raw) -> bool:
    if isinstance(raw, bool):
        return False
    try:
        return Decimal(str(raw).strip()).is_finite()
    except (InvalidOperation, ValueError):
        return False


def validate_product_payload(data) -> dict:
    """
    Validate an inbound product reference.

    Args:
        data: dict decoded from the request body

    Returns:
        dict of {field_name: error_message} — empty if all valid.
    """
    if not isinstance(data, dict):
        return {'product': 'Product details are required.'}

    errors = {}

    # ── id ────────────────────────────────────────────────────────
    if data.get('id') in (None, ''):
        errors['id'] = 'Product id is required.'

    # ── name ──────────────────────────────────────────────────────
    name = str(data.get('name') or '').strip()
    if not name:
        errors['name'] = 'Product name is required.'
    elif len(name) > 200:
        errors['name'] = 'Product name must be 200 characters or fewer.'

    # ── price ─────────────────────────────────────────────────────
    price_raw = data.get('price')
    if price_raw in (None, ''):
        price_raw = data.get('sellingPrice')
    if price_raw in (None, ''):
        errors['price'] = 'Price is required.'
    elif not _is_number(price_raw):
        errors['price'] = 'Price must be a valid number.'

    # ── stock ─────────────────────────────────────────────────────
    stock_raw = data.get('stock')
    if stock_raw not in (None, '') and not _is_number(stock_raw):
        errors['stock'] = 'Stock must be a number.'

    # ── taxRate ───────────────────────────────────────────────────
    tax_raw = data.get('taxRate', data.get('tax_rate'))
    if tax_raw not in (None, ''):
        if not _is_number(tax_raw):
            errors['taxRate'] = 'Tax rate must be a number.'
        elif not (0 <= Decimal(str(tax_raw).strip()) <= 100):
            errors['taxRate'] = 'Tax rate must be between 0 and 100.'

    return errors

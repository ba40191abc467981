"""
billdesk/billing/routes.py
---------------------------
JSON endpoints the billing screen calls, one per cashier action.

Each request: load the tabs from the session → apply one change through
the BillSessionManager (which recomputes totals) → save → return the
active bill with its totals and the tab list. Rejected actions return
409 with {"error": {code, message}} and leave the tabs untouched.
"""
from flask import current_app, jsonify, request

from billdesk.billing import billing
from billdesk.billing.invoice import build_print_payload
from billdesk.billing.sessions import ADJUSTMENT_KINDS
from billdesk.billing.store import load_manager, save_manager
from billdesk.catalog.models import Product, parse_variants
from billdesk.catalog.validators import validate_product_payload
from billdesk.customers.models import Customer


# ── Helpers ───────────────────────────────────────────────────────

def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _state(manager, status=200, **extra):
    """Active bill + totals + tab list, plus any extra keys."""
    active = manager.active
    payload = {
        'bill':   active.to_dict(),
        'totals': active.totals.to_dict(),
        'tabs':   [row.to_dict() for row in manager.summaries()],
    }
    payload.update(extra)
    return jsonify(payload), status


def _rejected(error, manager=None):
    current_app.logger.warning(f"Billing action rejected: {error.code.value}: {error.message}")
    body = {'error': error.to_dict()}
    if manager is not None:
        body['totals'] = manager.active.totals.to_dict()
    return jsonify(body), 409


def _product_from(data):
    """Parse an inbound product reference; returns (product, errors)."""
    errors = validate_product_payload(data)
    if errors:
        return None, errors
    return Product.from_dict(data, default_tax_rate=current_app.config['DEFAULT_TAX_RATE']), {}


def _variant_from(raw, product):
    """
    Variant named in the body: a plain name, or a {name, price?, stock?}
    object. The product's own variant of that name wins over the posted one.
    Returns (variant, errors).
    """
    if raw is None or isinstance(raw, str):
        return raw, {}
    if isinstance(raw, dict):
        parsed = parse_variants([raw])
        if parsed:
            return product.variant_named(parsed[0].name) or parsed[0], {}
    return None, {'variant': 'Variant must be a name or an object with a name.'}


def _cart_response(manager, result):
    if result.error is not None:
        return _rejected(result.error, manager)
    save_manager(manager)
    extra = {}
    if result.warning is not None:
        extra['warning'] = result.warning.to_dict()
        extra['needs_confirmation'] = result.needs_confirmation
    return _state(manager, **extra)


# ── TABS ──────────────────────────────────────────────────────────

@billing.route('/', methods=['GET'])
def index():
    """Current state of the billing screen."""
    manager = load_manager()
    save_manager(manager)
    return _state(manager)


@billing.route('/tabs', methods=['POST'])
def open_tab():
    manager = load_manager()
    manager.open()
    save_manager(manager)
    return _state(manager, status=201)


@billing.route('/tabs/<int:bill_id>/activate', methods=['POST'])
def activate_tab(bill_id):
    manager = load_manager()
    if not manager.activate(bill_id):
        return jsonify({'error': {'code': 'NotFound', 'message': f'No open bill {bill_id}.'}}), 404
    save_manager(manager)
    return _state(manager)


@billing.route('/tabs/<int:bill_id>', methods=['DELETE'])
def close_tab(bill_id):
    manager = load_manager()
    if not manager.close(bill_id):
        return jsonify({'error': {'code': 'NotFound', 'message': f'No open bill {bill_id}.'}}), 404
    save_manager(manager)
    return _state(manager)


@billing.route('/edit', methods=['POST'])
def edit_invoice():
    """Replace all tabs with one bill re-opened from a stored invoice."""
    invoice = _body().get('invoice')
    if not isinstance(invoice, dict):
        return jsonify({'errors': {'invoice': 'Invoice details are required.'}}), 400
    manager = load_manager()
    session = manager.load_for_edit(invoice)
    save_manager(manager)
    current_app.logger.info(f"Invoice {session.original_invoice_id} opened for editing")
    return _state(manager)


# ── CART LINES ────────────────────────────────────────────────────

@billing.route('/lines', methods=['POST'])
def add_line():
    """
    Add one unit of a product (optionally a variant).
    A low-stock advisory comes back with needs_confirmation=true;
    repeat with "confirmed": true to go ahead.
    """
    data = _body()
    product, errors = _product_from(data.get('product'))
    if errors:
        return jsonify({'errors': errors}), 400

    variant, errors = _variant_from(data.get('variant'), product)
    if errors:
        return jsonify({'errors': errors}), 400

    manager = load_manager()
    result = manager.add_line(product, variant,
                              confirmed=bool(data.get('confirmed')))
    return _cart_response(manager, result)


@billing.route('/lines/<path:line_id>', methods=['PATCH'])
def set_quantity(line_id):
    data = _body()
    manager = load_manager()
    result = manager.set_quantity(line_id, data.get('quantity'), data.get('stock'))
    return _cart_response(manager, result)


@billing.route('/lines/<path:line_id>', methods=['DELETE'])
def remove_line(line_id):
    manager = load_manager()
    result = manager.remove_line(line_id)
    return _cart_response(manager, result)


@billing.route('/lines/<path:line_id>/discount', methods=['POST'])
def line_discount(line_id):
    data = _body()
    manager = load_manager()
    result = manager.apply_line_discount(line_id, data.get('amount'),
                                         is_percent=bool(data.get('isPercent')))
    return _cart_response(manager, result)


@billing.route('/scan', methods=['POST'])
def scan_queue():
    """Add a batch of scanned products; rejected scans are listed, not fatal."""
    raw = _body().get('products')
    if not isinstance(raw, list):
        return jsonify({'errors': {'products': 'A list of products is required.'}}), 400

    products, invalid = [], []
    for index, item in enumerate(raw):
        product, errors = _product_from(item)
        if errors:
            invalid.append({'index': index, 'errors': errors})
        else:
            products.append(product)

    manager = load_manager()
    results = manager.add_scanned(products)
    save_manager(manager)

    rejected = [
        {'productId': p.id, 'error': r.error.to_dict()}
        for p, r in zip(products, results) if r.error is not None
    ]
    added = sum(1 for r in results if r.changed)
    return _state(manager, added=added, rejected=rejected, invalid=invalid)


# ── BILL ADJUSTMENTS ──────────────────────────────────────────────

@billing.route('/discount', methods=['POST'])
def bill_discount():
    data = _body()
    manager = load_manager()
    manager.apply_bill_discount(data.get('value'), is_percent=bool(data.get('isPercent')))
    save_manager(manager)
    return _state(manager)


@billing.route('/charges', methods=['POST'])
def additional_charges():
    manager = load_manager()
    manager.set_additional_charges(_body().get('amount'))
    save_manager(manager)
    return _state(manager)


@billing.route('/loyalty', methods=['POST'])
def redeem_loyalty():
    manager = load_manager()
    result = manager.redeem_points(_body().get('points'))
    if not result.ok:
        current_app.logger.warning(f"Loyalty redemption rejected: {result.failure.value}")
        return jsonify({'error': result.error.to_dict(), 'redemption': result.to_dict()}), 409
    save_manager(manager)
    return _state(manager, redemption=result.to_dict())


@billing.route('/adjustments/<kind>', methods=['DELETE'])
def clear_adjustment(kind):
    if kind not in ADJUSTMENT_KINDS:
        return jsonify({'errors': {'kind': f'Unknown adjustment "{kind}".'}}), 400
    manager = load_manager()
    manager.clear_adjustment(kind)
    save_manager(manager)
    return _state(manager)


@billing.route('/tax-type', methods=['POST'])
def tax_type():
    manager = load_manager()
    manager.set_jurisdiction(_body().get('taxType'))
    save_manager(manager)
    return _state(manager)


@billing.route('/customer', methods=['POST'])
def attach_customer():
    """Attach the customer in the body, or detach with {"customer": null}."""
    data = _body()
    raw = data.get('customer')
    if raw is not None and not isinstance(raw, dict):
        return jsonify({'errors': {'customer': 'Customer must be an object or null.'}}), 400
    manager = load_manager()
    manager.attach_customer(Customer.from_dict(raw))
    save_manager(manager)
    return _state(manager)


@billing.route('/payment', methods=['POST'])
def payment():
    data = _body()
    manager = load_manager()
    manager.set_payment(mode=data.get('paymentMode'),
                        amount_received=data.get('amountReceived'),
                        status=data.get('status'))
    save_manager(manager)
    return _state(manager)


@billing.route('/remarks', methods=['POST'])
def remarks():
    manager = load_manager()
    manager.set_remarks(_body().get('remarks'))
    save_manager(manager)
    return _state(manager)


# ── OUTPUT ────────────────────────────────────────────────────────

@billing.route('/preview', methods=['GET'])
def preview():
    """Print/preview payload for the active bill."""
    manager = load_manager()
    return jsonify(build_print_payload(manager.active, manager.tax_mode))


@billing.route('/finalize', methods=['POST'])
def finalize():
    """
    Produce the invoice payload for the active bill and close its tab.
    Blocked with 409 when the cart is empty or no customer phone is
    attached (the screen should open customer capture and retry).
    """
    manager = load_manager()
    bill_id = manager.active_id
    result = manager.finalize()
    if not result.ok:
        return _rejected(result.error, manager)

    save_manager(manager)
    current_app.logger.info(
        f"Bill {bill_id} finalized: total {result.payload['total']} "
        f"| status {result.payload['status']}"
    )
    return _state(manager, invoice=result.payload)

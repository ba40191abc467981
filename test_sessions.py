"""
test_sessions.py — Tests for the bill session manager (tabs, recompute, edit).
Run: pytest test_sessions.py -v
"""
from datetime import datetime
from decimal import Decimal

import pytest

from billdesk.billing.sessions import BillSessionManager
from billdesk.billing.totals import EMPTY_TOTALS, Jurisdiction, TaxMode
from billdesk.catalog.models import Product
from billdesk.customers.models import Customer
from billdesk.errors import ErrorCode, RedemptionFailure


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture
def manager():
    return BillSessionManager(tax_mode=TaxMode.EXCLUSIVE, default_jurisdiction='intra')


def make_product(pid='p1', price='100', stock='50', tax='18', name='Rice'):
    return Product(id=pid, name=name, price=Decimal(price),
                   stock=Decimal(stock), tax_rate=Decimal(tax))


def make_customer(points=1000, phone='9876543210', cid='c1'):
    return Customer(id=cid, name='Asha', phone=phone, loyalty_points=points)


# ── 1. Tab lifecycle ──────────────────────────────────────────────

def test_starts_with_one_active_session(manager):
    assert len(manager) == 1
    assert manager.active.session_id == manager.active_id
    assert manager.active.totals == EMPTY_TOTALS


def test_open_appends_and_activates(manager):
    first = manager.active_id
    opened = manager.open()
    assert len(manager) == 2
    assert manager.active_id == opened.session_id != first


def test_closing_last_session_resets_it(manager):
    manager.add_line(make_product())
    old_id = manager.active_id
    assert manager.close(old_id)

    assert len(manager) == 1
    assert manager.active_id != old_id
    assert manager.active.lines == []
    assert manager.active.totals == EMPTY_TOTALS


def test_closing_active_falls_back_to_last_remaining(manager):
    a = manager.active_id
    b = manager.open().session_id
    c = manager.open().session_id
    manager.activate(b)
    manager.close(b)
    assert [s.session_id for s in manager.sessions] == [a, c]
    assert manager.active_id == c


def test_closing_inactive_keeps_active(manager):
    a = manager.active_id
    b = manager.open().session_id
    manager.close(a)
    assert manager.active_id == b


def test_close_and_activate_unknown_id(manager):
    assert not manager.close(999)
    assert not manager.activate(999)
    assert len(manager) == 1


def test_session_ids_are_never_reused(manager):
    seen = {manager.active_id}
    for _ in range(3):
        manager.close(manager.active_id)
        assert manager.active_id not in seen
        seen.add(manager.active_id)


def test_switching_tabs_keeps_each_snapshot(manager):
    manager.add_line(make_product(price='100'))
    first = manager.active_id
    manager.open()
    manager.add_line(make_product(pid='p2', price='50', tax='0'))

    manager.activate(first)
    assert manager.active.totals.rounded_total == Decimal('118')
    totals = {row.session_id: row.total for row in manager.summaries()}
    assert sorted(totals.values()) == [Decimal('50'), Decimal('118')]


# ── 2. Mutations recompute totals ─────────────────────────────────

def test_every_change_recomputes(manager):
    manager.add_line(make_product())
    assert manager.active.totals.rounded_total == Decimal('118')

    manager.set_quantity('p1', 2, available_stock=50)
    assert manager.active.totals.rounded_total == Decimal('236')

    manager.apply_line_discount('p1', 50, is_percent=True)
    assert manager.active.totals.rounded_total == Decimal('118')

    manager.set_additional_charges('10')
    assert manager.active.totals.rounded_total == Decimal('128')

    manager.remove_line('p1')
    assert manager.active.totals.rounded_total == Decimal('10')


def test_rejected_change_leaves_session_untouched(manager):
    manager.add_line(make_product(stock='5'))
    before = manager.active.totals

    result = manager.set_quantity('p1', 6, available_stock=5)
    assert result.error.code == ErrorCode.STOCK_EXCEEDED
    assert manager.active.totals == before
    assert manager.active.lines[0].quantity == Decimal('1')

    result = manager.add_line(make_product(pid='gone', stock='0'))
    assert result.error.code == ErrorCode.STOCK_EXHAUSTED
    assert len(manager.active.lines) == 1


def test_bill_discount_percent_uses_taxable_subtotal(manager):
    manager.add_line(make_product(price='200'))
    manager.apply_bill_discount(10, is_percent=True)
    assert manager.active.bill_discount == Decimal('20')
    assert manager.active.totals.rounded_total == Decimal('216')


def test_jurisdiction_switch(manager):
    manager.add_line(make_product())
    manager.set_jurisdiction(Jurisdiction.INTER)
    assert manager.active.totals.igst == Decimal('18')
    manager.set_jurisdiction('not-a-place')
    assert manager.active.jurisdiction == Jurisdiction.INTER


def test_tax_mode_change_recomputes_all_tabs(manager):
    manager.add_line(make_product(price='118'))
    manager.open()
    manager.add_line(make_product(pid='p2', price='118'))

    manager.set_tax_mode('inclusive')
    for session in manager.sessions:
        assert session.totals.rounded_total == Decimal('118')
        assert session.totals.tax_total == Decimal('18')


def test_scanned_batch_reports_rejections(manager):
    results = manager.add_scanned([
        make_product('a'), make_product('b', stock='0'), make_product('a'),
    ])
    assert [r.changed for r in results] == [True, False, True]
    assert results[1].error.code == ErrorCode.STOCK_EXHAUSTED
    assert manager.active.lines[0].quantity == Decimal('2')


# ── 3. Loyalty ────────────────────────────────────────────────────

def test_redeem_without_customer_has_no_balance(manager):
    manager.add_line(make_product(price='1000'))
    result = manager.redeem_points(100)
    assert result.failure == RedemptionFailure.INSUFFICIENT_BALANCE
    assert manager.active.loyalty_points_discount == Decimal('0')


def test_redeem_applies_discount_before_tax(manager):
    manager.add_line(make_product(price='1000'))
    manager.attach_customer(make_customer(points=500))
    result = manager.redeem_points(200)

    assert result.ok
    session = manager.active
    assert session.loyalty_points_discount == Decimal('20')
    assert session.loyalty_points_redeemed == 200
    # (1000 − 20) × 1.18
    assert session.totals.rounded_total == Decimal('1156')
    assert session.totals.points_earned == 100


def test_rejected_redemption_keeps_previous(manager):
    manager.add_line(make_product(price='1000'))
    manager.attach_customer(make_customer(points=500))
    manager.redeem_points(200)
    assert not manager.redeem_points(150).ok
    assert manager.active.loyalty_points_redeemed == 200


def test_clear_loyalty_clears_both_fields(manager):
    manager.add_line(make_product(price='1000'))
    manager.attach_customer(make_customer())
    manager.redeem_points(100)
    assert manager.clear_adjustment('loyalty')
    assert manager.active.loyalty_points_discount == Decimal('0')
    assert manager.active.loyalty_points_redeemed == 0
    assert manager.active.totals.rounded_total == Decimal('1180')
    assert not manager.clear_adjustment('coupon')


def test_changing_customer_drops_redemption(manager):
    manager.add_line(make_product(price='1000'))
    manager.attach_customer(make_customer())
    manager.redeem_points(100)
    manager.attach_customer(make_customer(cid='c2'))
    assert manager.active.loyalty_points_redeemed == 0


def test_removing_lines_drops_redemption_over_cap(manager):
    manager.add_line(make_product(price='1000'))
    manager.add_line(make_product(pid='p2', price='100'))
    manager.attach_customer(make_customer(points=1000))
    assert manager.redeem_points(1000).ok   # ₹100 against a ₹550 cap

    manager.remove_line('p1')               # cap is now ₹50
    session = manager.active
    assert session.loyalty_points_redeemed == 0
    assert session.loyalty_points_discount == Decimal('0')
    assert session.totals.rounded_total == Decimal('118')


def test_redemption_kept_while_still_within_cap(manager):
    manager.add_line(make_product(price='1000'))
    manager.add_line(make_product(pid='p2', price='100'))
    manager.attach_customer(make_customer(points=1000))
    manager.redeem_points(500)              # ₹50

    manager.remove_line('p1')               # cap is exactly ₹50
    assert manager.active.loyalty_points_redeemed == 500
    # (100 − 50) × 1.18
    assert manager.active.totals.rounded_total == Decimal('59')


def test_points_earned_unchanged_by_bill_discount(manager):
    manager.add_line(make_product(price='1000'))
    manager.attach_customer(make_customer())
    manager.redeem_points(300)
    earned = manager.active.totals.points_earned
    for value in ('0', '100', '5000'):
        manager.apply_bill_discount(value)
        assert manager.active.totals.points_earned == earned


# ── 4. Edit & finalize ────────────────────────────────────────────

STORED_INVOICE = {
    'id': 'INV-42',
    'customerId': 'c9',
    'customerName': 'Ravi',
    'items': [
        {'productId': 'p1', 'name': 'Rice', 'quantity': 2, 'price': 100,
         'total': 190, 'taxRate': 18, 'unit': 'kg'},
        {'productId': 'p2', 'variantId': 'p2-XL', 'variantName': 'XL',
         'name': 'Shirt - XL', 'quantity': 1, 'price': 500, 'total': 500, 'taxRate': 5},
    ],
    'discount': 10,
    'additionalCharges': 0,
    'paymentMethod': 'UPI',
    'status': 'Paid',
    'taxType': 'inter',
}


def test_load_for_edit_replaces_all_tabs(manager):
    manager.open()
    manager.open()
    session = manager.load_for_edit(STORED_INVOICE)

    assert len(manager) == 1
    assert manager.active is session
    assert session.original_invoice_id == 'INV-42'
    assert [l.line_id for l in session.lines] == ['p1', 'p2-XL']
    assert session.lines[0].line_discount == Decimal('10')
    assert session.jurisdiction == Jurisdiction.INTER
    # (190 × 1.18) + (500 × 1.05) − 10 = 739.2
    assert session.totals.rounded_total == Decimal('739')


def test_finalize_blocked_keeps_tab(manager):
    result = manager.finalize()
    assert result.error.code == ErrorCode.EMPTY_CART

    manager.add_line(make_product())
    bill_id = manager.active_id
    result = manager.finalize()
    assert result.error.code == ErrorCode.MISSING_CUSTOMER
    assert manager.active_id == bill_id
    assert len(manager.active.lines) == 1


def test_finalize_success_resets_tab(manager):
    manager.add_line(make_product())
    manager.attach_customer(make_customer())
    bill_id = manager.active_id
    result = manager.finalize(now=datetime(2026, 1, 5, 10, 30))

    assert result.ok
    assert result.payload['total'] == '118'
    assert result.payload['date'] == '2026-01-05T10:30:00'
    assert manager.active_id != bill_id
    assert manager.active.lines == []


# ── 5. Serialisation ──────────────────────────────────────────────

def test_round_trip_through_dict(manager):
    manager.add_line(make_product())
    manager.attach_customer(make_customer())
    manager.redeem_points(100)
    manager.open()
    manager.add_line(make_product(pid='p2', price='40', tax='5'))
    manager.set_payment(mode='Card', amount_received='20')

    restored = BillSessionManager.from_dict(manager.to_dict())
    assert restored.active_id == manager.active_id
    assert [s.session_id for s in restored.sessions] == [s.session_id for s in manager.sessions]
    for original, copy in zip(manager.sessions, restored.sessions):
        assert copy.totals == original.totals
        assert copy.customer == original.customer
    assert restored.active.amount_received == Decimal('20')

    # new ids continue after the restored ones
    assert restored.open().session_id > max(s.session_id for s in manager.sessions)


def test_from_empty_state_gives_one_tab():
    restored = BillSessionManager.from_dict(None, tax_mode='inclusive')
    assert len(restored) == 1
    assert restored.tax_mode == TaxMode.INCLUSIVE

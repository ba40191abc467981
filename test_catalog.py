"""
test_catalog.py — Tests for inbound product parsing and validation.
Run: pytest test_catalog.py -v
"""
import json
from decimal import Decimal

import pytest

from billdesk.catalog.models import Product, Variant, parse_variants
from billdesk.catalog.validators import validate_product_payload


# ── 1. Variant shapes ─────────────────────────────────────────────

def test_variants_from_json_string():
    raw = json.dumps([{'name': '1kg', 'price': 90}, {'name': '5kg', 'price': '420', 'stock': 3}])
    variants = parse_variants(raw)
    assert variants == [
        Variant('1kg', price=Decimal('90')),
        Variant('5kg', price=Decimal('420'), stock=Decimal('3')),
    ]
    assert not variants[0].tracks_stock
    assert variants[1].tracks_stock


def test_variants_from_plain_names():
    assert parse_variants(['Red', ' ', 'Blue']) == [Variant('Red'), Variant('Blue')]


def test_variant_name_from_options():
    assert parse_variants([{'options': ['XL', 'XXL']}, {'price': 5}]) == [Variant('XL')]


@pytest.mark.parametrize('raw', [None, '', 'not json', '{"a": 1}', 42])
def test_unreadable_variants_yield_none(raw):
    assert parse_variants(raw) == []


# ── 2. Product payloads ───────────────────────────────────────────

def test_selling_price_fallback_and_min_stock():
    product = Product.from_dict({'id': 7, 'name': ' Dal ', 'sellingPrice': '120',
                                 'stock': '4', 'min_stock': '5', 'unit': 'kg'})
    assert product.id == '7'
    assert product.name == 'Dal'
    assert product.price == Decimal('120')
    assert product.min_stock == Decimal('5')
    assert product.unit == 'kg'


def test_missing_tax_rate_uses_default_but_zero_is_kept():
    assert Product.from_dict({'id': 'a', 'name': 'A', 'price': 1}).tax_rate == Decimal('18')
    assert Product.from_dict({'id': 'a', 'name': 'A', 'price': 1},
                             default_tax_rate='12').tax_rate == Decimal('12')
    assert Product.from_dict({'id': 'a', 'name': 'A', 'price': 1, 'taxRate': 0}).tax_rate == Decimal('0')


def test_variant_lookup():
    product = Product.from_dict({'id': 'p', 'name': 'Tee', 'price': 300, 'variants': ['S', 'M']})
    assert product.variant_named('M') == Variant('M')
    assert product.variant_named('L') is None


# ── 3. Validation ─────────────────────────────────────────────────

def test_valid_payload_has_no_errors():
    assert validate_product_payload({'id': 'p1', 'name': 'Rice', 'price': '100',
                                     'stock': 3, 'taxRate': '5'}) == {}


def test_validation_errors():
    errors = validate_product_payload({'name': 'x' * 201, 'price': 'abc',
                                       'stock': 'lots', 'taxRate': 120})
    assert set(errors) == {'id', 'name', 'price', 'stock', 'taxRate'}


def test_price_required():
    assert validate_product_payload({'id': 'p', 'name': 'n'})['price'] == 'Price is required.'


def test_non_dict_payload():
    assert 'product' in validate_product_payload(None)

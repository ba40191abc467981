"""
billdesk/catalog/models.py
---------------------------
Inbound product references.

The catalog is owned by another service; billing only sees a snapshot
of each product at the moment the cashier picks it. Variant data comes
in several shapes (a JSON string, a list of names, a list of objects)
and is normalised here, once, into `Variant` objects so the cart never
has to sniff shapes.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from billdesk.utils.numbers import ZERO, to_decimal


DEFAULT_UNIT = 'pcs'


@dataclass(frozen=True)
class Variant:
    """One selectable variant. `price`/`stock` are None when not overridden."""
    name:  str
    price: Optional[Decimal] = None
    stock: Optional[Decimal] = None

    @property
    def tracks_stock(self) -> bool:
        return self.stock is not None


@dataclass(frozen=True)
class Product:
    """A catalog product as handed to the billing screen."""
    id:        str
    name:      str
    price:     Decimal
    stock:     Decimal = ZERO
    min_stock: Optional[Decimal] = None
    tax_rate:  Decimal = Decimal('18')
    unit:      str = DEFAULT_UNIT
    hsn:       str = ''
    variants:  List[Variant] = field(default_factory=list)

    def variant_named(self, name: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.name == name:
                return variant
        return None

    @classmethod
    def from_dict(cls, data: dict, default_tax_rate=Decimal('18')) -> 'Product':
        """
        Build a Product from a catalog payload.

        Accepts `price` or `sellingPrice`, `minStock` or `min_stock`.
        A missing tax rate falls back to `default_tax_rate`; an explicit
        zero is kept as zero.
        """
        price = data.get('price')
        if price in (None, ''):
            price = data.get('sellingPrice')

        min_stock = data.get('minStock', data.get('min_stock'))
        tax_rate  = data.get('taxRate', data.get('tax_rate'))

        return cls(
            id=str(data.get('id', '')),
            name=str(data.get('name', '')).strip(),
            price=to_decimal(price),
            stock=to_decimal(data.get('stock')),
            min_stock=None if min_stock in (None, '') else to_decimal(min_stock),
            tax_rate=to_decimal(default_tax_rate) if tax_rate in (None, '') else to_decimal(tax_rate),
            unit=data.get('unit') or DEFAULT_UNIT,
            hsn=data.get('hsn') or '',
            variants=parse_variants(data.get('variants')),
        )


def parse_variants(raw) -> List[Variant]:
    """
    Normalise the catalog's variant field.

    `raw` may be None, a JSON-encoded string, a list of plain names, or
    a list of {name, price?, stock?} dicts (older records keep the name
    under `options[0]`). Unreadable input yields no variants.
    """
    if raw in (None, ''):
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []

    variants = []
    for entry in raw:
        if isinstance(entry, str):
            if entry.strip():
                variants.append(Variant(name=entry.strip()))
        elif isinstance(entry, dict):
            name = entry.get('name')
            if not name and entry.get('options'):
                name = entry['options'][0]
            if not name:
                continue
            price = entry.get('price')
            stock = entry.get('stock')
            variants.append(Variant(
                name=str(name),
                price=None if price in (None, '') else to_decimal(price),
                stock=None if stock in (None, '') else to_decimal(stock),
            ))
    return variants

"""
billdesk/billing/totals.py
---------------------------
Pure totals computation for one bill.

    compute_totals(lines, adjustments…, jurisdiction, tax_mode) → TotalsSnapshot

No state, no I/O, no settings lookups: the tax mode and jurisdiction are
passed in on every call. The same inputs always give an equal snapshot.

Order of operations (each step depends on the previous one):
  1. per line:  gross = price × qty,  taxable = max(0, gross − line discount)
  2. sums:      gross total, item discount total, original subtotal
  3. loyalty:   taxable after loyalty = max(0, original subtotal − loyalty)
  4. tax:       loyalty spread over lines by share of original subtotal;
                exclusive adds rate%, inclusive backs the tax out
  5. split:     intra → CGST + SGST halves, inter → IGST
  6. pre-discount total (tax only added under exclusive)
  7. bill discount, floored at zero
  8. round half away from zero to whole currency
  9. points earned = floor(original subtotal / 10)
 10. displayed taxable subtotal is always the tax-exclusive figure

Loyalty comes off before tax; the bill discount comes off after tax.
All arithmetic uses Decimal — no float.
"""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Iterable

from billdesk.utils.numbers import ZERO, money, non_negative, round_half_away


HUNDRED = Decimal('100')
POINTS_PER_CURRENCY = Decimal('10')   # 1 point per ₹10 of original subtotal


class TaxMode(str, enum.Enum):
    EXCLUSIVE = 'exclusive'   # prices exclude tax
    INCLUSIVE = 'inclusive'   # prices already contain tax

    @classmethod
    def parse(cls, value, default=None) -> 'TaxMode':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default if default is not None else cls.EXCLUSIVE


class Jurisdiction(str, enum.Enum):
    INTRA = 'intra'   # CGST + SGST
    INTER = 'inter'   # IGST

    @classmethod
    def parse(cls, value, default=None) -> 'Jurisdiction':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default if default is not None else cls.INTRA


@dataclass(frozen=True)
class TotalsSnapshot:
    gross_total:             Decimal = ZERO
    item_discount_total:     Decimal = ZERO
    taxable_subtotal:        Decimal = ZERO
    original_subtotal:       Decimal = ZERO
    tax_total:               Decimal = ZERO
    cgst:                    Decimal = ZERO
    sgst:                    Decimal = ZERO
    igst:                    Decimal = ZERO
    bill_discount:           Decimal = ZERO
    loyalty_points_discount: Decimal = ZERO
    additional_charges:      Decimal = ZERO
    rounded_total:           Decimal = ZERO
    round_off:               Decimal = ZERO
    points_earned:           int = 0

    @property
    def pre_round_total(self) -> Decimal:
        return self.rounded_total - self.round_off

    def to_dict(self) -> dict:
        """Display form: money at 2dp, total as a whole amount."""
        data = {}
        for key, value in asdict(self).items():
            data[key] = money(value) if isinstance(value, Decimal) else value
        data['rounded_total'] = str(self.rounded_total)
        return data


EMPTY_TOTALS = TotalsSnapshot()


def line_taxable_value(line, tax_mode: TaxMode) -> Decimal:
    """
    Taxable value of one line before any bill-level adjustment:
    price × qty, with the tax backed out when prices are tax-inclusive.
    """
    gross = line.gross
    if tax_mode is TaxMode.INCLUSIVE:
        return gross / (1 + non_negative(line.tax_rate) / HUNDRED)
    return gross


def compute_totals(
    lines: Iterable,
    bill_discount=ZERO,
    additional_charges=ZERO,
    loyalty_points_discount=ZERO,
    jurisdiction: Jurisdiction = Jurisdiction.INTRA,
    tax_mode: TaxMode = TaxMode.EXCLUSIVE,
) -> TotalsSnapshot:
    """Compute a TotalsSnapshot for a cart and its bill-level adjustments."""
    lines        = list(lines)
    jurisdiction = Jurisdiction.parse(jurisdiction)
    tax_mode     = TaxMode.parse(tax_mode)

    bill_discount           = non_negative(bill_discount)
    additional_charges      = non_negative(additional_charges)
    loyalty_points_discount = non_negative(loyalty_points_discount)

    # ── 1–2. Line amounts and cart sums ───────────────────────────
    gross_total   = ZERO
    item_discount = ZERO
    item_taxables = []

    for line in lines:
        gross    = line.gross
        discount = non_negative(line.line_discount)
        gross_total   += gross
        item_discount += discount
        item_taxables.append(max(ZERO, gross - discount))

    original_subtotal = sum(item_taxables, ZERO)

    # ── 3. Loyalty reduces the taxable base ───────────────────────
    taxable_after_loyalty = max(ZERO, original_subtotal - loyalty_points_discount)

    # ── 4. Per-line tax on the loyalty-reduced amounts ────────────
    tax_total = ZERO
    for line, item_taxable in zip(lines, item_taxables):
        if original_subtotal > ZERO:
            share = item_taxable / original_subtotal
        else:
            share = ZERO
        after_loyalty = max(ZERO, item_taxable - loyalty_points_discount * share)
        rate = non_negative(line.tax_rate) / HUNDRED

        if tax_mode is TaxMode.INCLUSIVE:
            taxable_value = after_loyalty / (1 + rate)
            tax_total += after_loyalty - taxable_value
        else:
            tax_total += after_loyalty * rate

    # ── 5. Jurisdiction split ─────────────────────────────────────
    if jurisdiction is Jurisdiction.INTRA:
        cgst = sgst = tax_total / 2
        igst = ZERO
    else:
        cgst = sgst = ZERO
        igst = tax_total

    # ── 6–7. Charges, then bill discount ──────────────────────────
    if tax_mode is TaxMode.INCLUSIVE:
        pre_discount_total = taxable_after_loyalty + additional_charges
        taxable_subtotal   = taxable_after_loyalty - tax_total
    else:
        pre_discount_total = taxable_after_loyalty + tax_total + additional_charges
        taxable_subtotal   = taxable_after_loyalty

    pre_round_total = max(ZERO, pre_discount_total - bill_discount)

    # ── 8. Round to whole currency ────────────────────────────────
    rounded_total = round_half_away(pre_round_total)
    round_off     = rounded_total - pre_round_total

    # ── 9. Points on the pre-loyalty, pre-discount subtotal ───────
    points_earned = int((original_subtotal / POINTS_PER_CURRENCY).to_integral_value(rounding=ROUND_FLOOR))

    return TotalsSnapshot(
        gross_total=gross_total,
        item_discount_total=item_discount,
        taxable_subtotal=taxable_subtotal,
        original_subtotal=original_subtotal,
        tax_total=tax_total,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        bill_discount=bill_discount,
        loyalty_points_discount=loyalty_points_discount,
        additional_charges=additional_charges,
        rounded_total=rounded_total,
        round_off=round_off,
        points_earned=points_earned,
    )

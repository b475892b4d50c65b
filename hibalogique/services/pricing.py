from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable

from hibalogique.domain.quotes import LineItem, Quote
from hibalogique.services.tax import tax_rate_for


def to_number(value: Any) -> float:
    """
    Permissive numeric coercion for form input.
    Blank, non-numeric, non-finite and negative values all become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        x = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(x) or x < 0:
        return 0.0
    return x


def clamp_percent(value: Any) -> float:
    return min(100.0, to_number(value))


def line_subtotal(line: LineItem) -> float:
    return to_number(line.unit_price) * to_number(line.samples)


@dataclass(frozen=True)
class DerivedTotals:
    line_subtotals: tuple[float, ...]
    line_totals_incl_tax: tuple[float, ...]
    subtotal: float
    discount_pct: float
    discount_amount: float
    after_discount: float
    tax_rate: float
    taxes: float
    total: float


def compute_totals(quote: Quote, lines: Iterable[LineItem]) -> DerivedTotals:
    """
    Pure calculation, full float precision (rounding only happens on display).

    subtotal -> discount -> amount after discount -> taxes -> total
    """
    rate = tax_rate_for(quote.country, quote.province)
    subs = tuple(line_subtotal(ln) for ln in lines)

    subtotal = sum(subs)
    pct = clamp_percent(quote.discount_pct)
    discount_amount = subtotal * (pct / 100.0)
    after_discount = max(0.0, subtotal - discount_amount)
    taxes = after_discount * rate
    total = max(0.0, after_discount + taxes)

    return DerivedTotals(
        line_subtotals=subs,
        line_totals_incl_tax=tuple(s * (1 + rate) for s in subs),
        subtotal=subtotal,
        discount_pct=pct,
        discount_amount=discount_amount,
        after_discount=after_discount,
        tax_rate=rate,
        taxes=taxes,
        total=total,
    )

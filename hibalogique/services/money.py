from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

MONEY = Decimal("0.01")


def _d(x) -> Decimal:
    return x if isinstance(x, Decimal) else Decimal(str(x))


def qmoney(x) -> Decimal:
    return _d(x).quantize(MONEY, rounding=ROUND_HALF_UP)


def fmt_money(amount, symbol: str = "$") -> str:
    """
    1234.567 -> "$1,234.57"
    -1 -> "-$1.00"
    """
    d = qmoney(amount or 0)
    sign = "-" if d < 0 else ""
    whole, frac = f"{abs(d):.2f}".split(".")
    # group thousands with ","
    parts = []
    while whole:
        parts.append(whole[-3:])
        whole = whole[:-3]
    return f"{sign}{symbol}{','.join(reversed(parts))}.{frac}"


def fmt_rate(rate) -> str:
    """0.14975 -> "14.975%" """
    return f"{_d(rate) * 100:.3f}%"

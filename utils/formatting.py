"""Display helpers shared by the decision engine and the dashboard."""

import math


def fmt_money(amount: float) -> str:
    """Whole currency units with thousands separators, e.g. 1,250,000."""
    if not math.isfinite(amount):
        return "∞" if amount > 0 else "-∞"
    return f"{amount:,.0f}"


def pct(fraction: float, digits: int = 0) -> str:
    """Fraction as a percentage string: pct(0.125, 1) -> '12.5%'."""
    return f"{fraction * 100:.{digits}f}%"


def fmt_multiple(value: float, digits: int = 2) -> str:
    if math.isinf(value):
        return "∞"
    return f"{value:.{digits}f}x"

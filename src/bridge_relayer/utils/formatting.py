from decimal import Decimal

from ..models import FIXED_POINT


def format_units(amount: int, decimals: int) -> str:
    """Render a raw token amount in whole units, e.g. ``1500000, 6 -> '1.5'``."""
    value = Decimal(amount).scaleb(-decimals).normalize()
    return f"{value:f}"


def format_pct(fee_pct: int) -> str:
    """Render a 1e18-scaled fraction as a percentage, e.g. ``10**16 -> '1%'``."""
    value = (Decimal(fee_pct) * 100 / FIXED_POINT).normalize()
    return f"{value:f}%"

"""
Result formatting.

Rounds a float to a fixed number of decimal places and renders the shortest
decimal text for the rounded value, so floating-point noise such as
0.30000000000000004 never reaches the display or the next expression.
"""

import math
from decimal import ROUND_HALF_UP, Context, Decimal

from voxcalc.config import settings

# Magnitude from which results render in exponent form ("1e+21")
EXPONENT_THRESHOLD = 1e21

# Wide enough to quantize any finite float without losing integer digits
_CONTEXT = Context(prec=400)


def round_decimal(value: float, decimals: int) -> float:
    """Round half away from zero on the exact binary value of ``value``."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP, context=_CONTEXT))


def format_result(value: float, decimals: int | None = None) -> str:
    """
    Render a numeric result as canonical display text.

    Args:
        value: Finite numeric result
        decimals: Decimal places to keep (default from settings)

    Returns:
        Minimal decimal text, e.g. ``"0.3"``, ``"14"``, ``"-2.5"``
    """
    if not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite value: {value}")

    decimals = settings.result_decimals if decimals is None else decimals
    rounded = round_decimal(value, decimals)

    if rounded == 0:
        return "0"
    if abs(rounded) >= EXPONENT_THRESHOLD:
        return repr(rounded)

    text = format(Decimal(repr(rounded)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text

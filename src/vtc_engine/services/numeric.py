"""Rounding helpers shared by the pricing and compliance services."""

from __future__ import annotations

import math


def round_to(value: float, digits: int = 2) -> float:
    """Round half up to ``digits`` decimals (0.125 -> 0.13, -2.5 -> -2.0 at 0 digits).

    Amounts are rounded at every intermediate step, so the rounding mode is part
    of the pricing behaviour.
    """

    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_currency(value: float) -> float:
    return round_to(value, 2)

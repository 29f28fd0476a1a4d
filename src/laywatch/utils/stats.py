"""Numeric helpers shared by the pricing and sizing code."""

from __future__ import annotations

import math
from collections.abc import Iterable

import numpy as np


def is_valid_price(price: float | None) -> bool:
    """A usable decimal price is finite and strictly greater than 1.

    Providers publish 0 (and occasionally 1) as placeholders for runners with
    no market yet.
    """
    if price is None:
        return False
    try:
        value = float(price)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 1.0


def valid_prices(prices: Iterable[float | None]) -> list[float]:
    """Filter a price sequence down to usable decimal prices."""
    return [float(p) for p in prices if is_valid_price(p)]


def mean_price(prices: Iterable[float | None]) -> float | None:
    """Arithmetic mean of the valid prices, or None if there are none."""
    usable = valid_prices(prices)
    if not usable:
        return None
    return float(np.mean(usable))


def book_percentage(prices: Iterable[float | None]) -> float:
    """Market overround: sum of implied probabilities, as a percentage.

    100 is a fair book; bookmaker margin pushes it above 100.
    """
    usable = valid_prices(prices)
    if not usable:
        return 0.0
    return float(sum(1.0 / p for p in usable) * 100)


def round2(value: float) -> float:
    """Round a currency amount for display."""
    return round(value, 2)


def round4(value: float) -> float:
    """Round a fraction or probability for display."""
    return round(value, 4)

"""Price compression and value-signal classification.

Compression measures how far a runner's price has shortened from its
opening anchor:

    compression % = (anchor - current) / anchor * 100

A positive value means the price came in (the horse is being backed); zero
or negative means it held or drifted, which never produces a signal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from laywatch.config import settings
from laywatch.constants import SIGNAL_CONSERVATIVE, SIGNAL_NONE, SIGNAL_PREMIUM, SIGNAL_STRONG


class ValueSignal(str, Enum):
    """Ordered signal tiers (NONE < CONSERVATIVE < STRONG < PREMIUM)."""

    NONE = SIGNAL_NONE
    CONSERVATIVE = SIGNAL_CONSERVATIVE
    STRONG = SIGNAL_STRONG
    PREMIUM = SIGNAL_PREMIUM

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {
    ValueSignal.NONE: 0,
    ValueSignal.CONSERVATIVE: 1,
    ValueSignal.STRONG: 2,
    ValueSignal.PREMIUM: 3,
}


@dataclass(frozen=True)
class Thresholds:
    """Compression percentages for each tier.

    Expected to satisfy conservative <= strong <= premium. This is not
    enforced: with an unordered triple, classification still checks premium,
    then strong, then conservative and returns the first tier met.
    """

    conservative: float = 15.0
    strong: float = 25.0
    premium: float = 40.0

    @classmethod
    def from_settings(cls) -> Thresholds:
        return cls(
            conservative=settings.threshold_conservative,
            strong=settings.threshold_strong,
            premium=settings.threshold_premium,
        )


def price_compression(anchor_price: float | None, current_price: float | None) -> float | None:
    """Percentage shortening from anchor to current price.

    None means "cannot classify" (no anchor yet, no current price, or an
    unusable anchor), never zero.
    """
    if anchor_price is None or current_price is None:
        return None
    if anchor_price <= 0:
        return None
    return (anchor_price - current_price) / anchor_price * 100


def value_signal(compression_pct: float | None, thresholds: Thresholds) -> ValueSignal:
    """Map a compression percentage to its signal tier."""
    if compression_pct is None or compression_pct <= 0:
        return ValueSignal.NONE
    # Strongest tier first.
    if compression_pct >= thresholds.premium:
        return ValueSignal.PREMIUM
    if compression_pct >= thresholds.strong:
        return ValueSignal.STRONG
    if compression_pct >= thresholds.conservative:
        return ValueSignal.CONSERVATIVE
    return ValueSignal.NONE


def classify(
    anchor_price: float | None,
    current_price: float | None,
    thresholds: Thresholds | None = None,
) -> tuple[float | None, ValueSignal]:
    """Compute compression and its signal for one runner."""
    thresholds = thresholds or Thresholds.from_settings()
    compression = price_compression(anchor_price, current_price)
    return compression, value_signal(compression, thresholds)

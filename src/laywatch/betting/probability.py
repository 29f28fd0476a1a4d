"""Win-probability model and market-implied probabilities.

The calibrated model is the two-parameter "betting equation":

    P(win) = 1 / (1 + alpha * (O - 1)^beta)

With alpha = beta = 1 it reduces to the raw implied probability 1/O.
Parameters are fitted per market segment from settled results
(see ``laywatch.betting.calibration``).
"""

from __future__ import annotations

from dataclasses import dataclass

from laywatch.config import settings


@dataclass(frozen=True)
class ModelParams:
    """Calibration parameters. (1.0, 1.0) means no calibration."""

    alpha: float = 1.0
    beta: float = 1.0

    @classmethod
    def from_settings(cls) -> ModelParams:
        return cls(alpha=settings.model_alpha, beta=settings.model_beta)


def model_probability(decimal_odds: float, params: ModelParams | None = None) -> float:
    """Calibrated probability that the runner wins.

    Odds <= 1 imply certainty and return 1.0 instead of raising; such
    placeholder prices are normally filtered out before they get here.
    """
    params = params or ModelParams()
    if decimal_odds <= 1:
        return 1.0
    x = decimal_odds - 1  # fractional odds
    try:
        denom = 1.0 + params.alpha * x**params.beta
    except OverflowError:
        # Extreme odds or beta: the denominator is unbounded and p -> 0.
        return 0.0
    if denom == 0:
        # Only reachable with a negative alpha; the caller owns that config.
        return 1.0
    return 1.0 / denom


def market_probability(decimal_odds: float) -> float:
    """Market-implied win probability 1/O (0.0 for non-positive odds)."""
    if decimal_odds <= 0:
        return 0.0
    return 1.0 / decimal_odds


def break_even_probability(lay_odds: float, commission: float) -> float:
    """Win probability at which a lay has zero expected value.

    Solving q*S*(1-c) = p*S*(O-1) with q = 1-p gives (1-c) / (O-c).
    Any model probability below this is a +EV lay.
    """
    if lay_odds <= 1:
        return 1.0
    return (1 - commission) / (lay_odds - commission)

"""Kelly sizing for exchange LAY bets with commission.

When we lay a runner at decimal odds O for stake S:

- runner loses (prob q = 1 - p): we keep S, less commission c -> +S(1-c)
- runner wins  (prob p): we pay the backer's winnings -> -L, L = S(O-1)

Sizing is expressed as the fraction f of bankroll B risked as liability
(L = fB). Per unit of liability the lay returns r = (1-c)/(O-1), so the
bankroll moves to B(1 + f r) or B(1 - f). Maximising

    G(f) = q ln(1 + f r) + p ln(1 - f)

gives the closed form

    f* = q - p/r = (1 - p) - p (O - 1) / (1 - c)

Plugging the runner's odds into the back-bet Kelly (bp - q)/b gives the
wrong sign and scale for a lay.
"""

from __future__ import annotations

from dataclasses import dataclass

from laywatch.config import settings
from laywatch.utils.logging import get_logger
from laywatch.utils.stats import round2, round4

log = get_logger(__name__)


@dataclass(frozen=True)
class SizingParams:
    """Bankroll and risk limits for one evaluation cycle."""

    bankroll: float
    commission: float = 0.05
    kelly_multiplier: float = 1.0
    max_liability_pct: float = 100.0  # percent of bankroll
    min_stake: float = 0.0

    @classmethod
    def from_settings(cls) -> SizingParams:
        return cls(
            bankroll=settings.bankroll,
            commission=settings.commission,
            kelly_multiplier=settings.resolved_kelly_multiplier,
            max_liability_pct=settings.max_liability_pct,
            min_stake=settings.min_stake,
        )


@dataclass(frozen=True)
class SizingResult:
    """Display-rounded sizing output: currency to 2 dp, fractions to 4 dp."""

    kelly_fraction: float  # full-Kelly f*, before multiplier and caps
    return_per_liability: float  # r = (1-c)/(O-1)
    lay_stake: float
    liability: float
    profit_if_lose: float  # net of commission
    loss_if_win: float
    ev: float
    ev_pct_bankroll: float
    ev_per_liability: float
    capped_by_max_liability: bool = False
    below_min_stake: bool = False

    @property
    def is_bet(self) -> bool:
        return self.liability > 0


def lay_liability(stake: float, lay_odds: float) -> float:
    """L = S * (O - 1)."""
    return stake * (lay_odds - 1)


def profit_if_lose(stake: float, commission: float) -> float:
    """Net profit when the laid runner loses: S * (1 - c)."""
    return stake * (1 - commission)


def loss_if_win(stake: float, lay_odds: float) -> float:
    """Loss when the laid runner wins: the full liability."""
    return lay_liability(stake, lay_odds)


def lay_expected_value(stake: float, lay_odds: float, p_win: float, commission: float) -> float:
    """EV = q * S(1-c) - p * S(O-1)."""
    p_lose = 1 - p_win
    return p_lose * profit_if_lose(stake, commission) - p_win * loss_if_win(stake, lay_odds)


def full_kelly_fraction(lay_odds: float, p_win: float, commission: float) -> float:
    """Unrounded f* for a lay; 0.0 for degenerate odds or commission."""
    odds_minus_one = lay_odds - 1
    if odds_minus_one <= 0 or commission >= 1:
        return 0.0
    return (1 - p_win) - p_win * odds_minus_one / (1 - commission)


def _no_bet(kelly_fraction: float, return_per_liability: float) -> SizingResult:
    return SizingResult(
        kelly_fraction=round4(max(kelly_fraction, 0.0)),
        return_per_liability=round4(return_per_liability),
        lay_stake=0.0,
        liability=0.0,
        profit_if_lose=0.0,
        loss_if_win=0.0,
        ev=0.0,
        ev_pct_bankroll=0.0,
        ev_per_liability=0.0,
    )


def size_lay(
    bankroll: float,
    lay_odds: float,
    p_win: float,
    commission: float,
    kelly_multiplier: float = 1.0,
    max_liability_pct: float = 100.0,
    min_stake: float = 0.0,
) -> SizingResult:
    """Kelly-optimal lay stake and liability, with caps applied.

    Never raises: degenerate odds, commission >= 1, or a non-positive
    bankroll or Kelly multiplier return a zero "no bet" result. Stakes under
    ``min_stake`` are flagged, not rounded up.
    """
    odds_minus_one = lay_odds - 1
    if odds_minus_one <= 0 or commission >= 1:
        return _no_bet(0.0, 0.0)

    r = (1 - commission) / odds_minus_one
    f_star = full_kelly_fraction(lay_odds, p_win, commission)
    if f_star <= 0 or bankroll <= 0:
        return _no_bet(f_star, r)

    # No leverage: never risk more than the whole bankroll.
    f = min(f_star * kelly_multiplier, 1.0)
    if f <= 0:
        # Zero or negative multiplier.
        return _no_bet(f_star, r)
    liability = f * bankroll
    stake = liability / odds_minus_one

    capped = False
    max_liability = bankroll * max_liability_pct / 100
    if liability > max_liability:
        liability = max_liability
        stake = liability / odds_minus_one
        capped = True

    below_min = 0 < stake < min_stake

    profit = profit_if_lose(stake, commission)
    loss = liability
    ev = (1 - p_win) * profit - p_win * loss
    ev_pct = ev / bankroll * 100 if bankroll > 0 else 0.0
    ev_per_liab = ev / liability if liability > 0 else 0.0

    log.debug(
        "lay_sized",
        lay_odds=lay_odds,
        p_win=round4(p_win),
        kelly=round4(f_star),
        liability=round2(liability),
        capped=capped,
    )

    return SizingResult(
        kelly_fraction=round4(f_star),
        return_per_liability=round4(r),
        lay_stake=round2(stake),
        liability=round2(liability),
        profit_if_lose=round2(profit),
        loss_if_win=round2(loss),
        ev=round2(ev),
        ev_pct_bankroll=round4(ev_pct),
        ev_per_liability=round4(ev_per_liab),
        capped_by_max_liability=capped,
        below_min_stake=below_min,
    )


def size_lay_with(params: SizingParams, lay_odds: float, p_win: float) -> SizingResult:
    """``size_lay`` driven by a SizingParams bundle."""
    return size_lay(
        bankroll=params.bankroll,
        lay_odds=lay_odds,
        p_win=p_win,
        commission=params.commission,
        kelly_multiplier=params.kelly_multiplier,
        max_liability_pct=params.max_liability_pct,
        min_stake=params.min_stake,
    )

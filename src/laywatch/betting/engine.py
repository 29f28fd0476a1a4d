"""Lay decision engine: per-runner verdicts and race evaluation.

Given a runner's opening anchor, its current execution price and the
market consensus, decides whether to lay it and how much:

1. no current price            -> no verdict
2. model vs market probability -> edge
3. price shortened vs anchor?  -> required
4. model p < market p?         -> required (lay value)
5. Kelly sizing                -> must leave a positive edge after commission
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from laywatch.betting.anchors import Observation
from laywatch.betting.probability import ModelParams, market_probability, model_probability
from laywatch.betting.signals import Thresholds, ValueSignal, classify
from laywatch.betting.sizing import SizingParams, SizingResult, size_lay_with
from laywatch.config import settings
from laywatch.constants import (
    REASON_BELOW_MIN_STAKE,
    REASON_NO_CURRENT_ODDS,
    REASON_NO_LAY_VALUE,
    REASON_NON_POSITIVE_EDGE,
    REASON_PLACE_LAY,
    REASON_PRICE_NOT_SHORTENED,
    REASON_ZERO_STAKE,
)
from laywatch.utils.logging import get_logger
from laywatch.utils.stats import book_percentage, is_valid_price, mean_price, round4

log = get_logger(__name__)


@dataclass
class LayDecision:
    """Verdict for one runner. Recomputed every cycle, never authoritative.

    Fields that could not be evaluated are None rather than zero.
    """

    p_model: float | None
    p_market: float | None
    edge: float | None  # p_market - p_model; positive = runner overbet
    price_shortened: bool
    has_lay_value: bool
    place_lay: bool
    reasons: list[str] = field(default_factory=list)
    sizing: SizingResult | None = None
    ev: float | None = None
    ev_pct_bankroll: float | None = None


@dataclass(frozen=True)
class RunnerPrices:
    """Current price snapshot for one runner across sources."""

    runner: str
    consensus_price: float | None  # mean of valid source prices
    execution_price: float | None  # price at the execution venue, if quoted
    best_price: float | None  # lowest
    best_source: str | None
    worst_price: float | None  # highest
    worst_source: str | None
    source_count: int

    @property
    def current_price(self) -> float | None:
        """Execution venue price when quoted, else the consensus."""
        return self.execution_price if self.execution_price is not None else self.consensus_price

    @property
    def spread(self) -> tuple[float, float] | None:
        if self.best_price is None or self.worst_price is None:
            return None
        return self.best_price, self.worst_price


@dataclass
class RunnerEvaluation:
    """Everything the presentation layer shows for one runner."""

    runner: str
    prices: RunnerPrices
    anchor_price: float | None
    compression_pct: float | None
    signal: ValueSignal
    decision: LayDecision


@dataclass
class RaceEvaluation:
    """One evaluation cycle for one race."""

    race_id: str
    runners: list[RunnerEvaluation]
    book_percentage: float | None

    @property
    def runner_count(self) -> int:
        return len(self.runners)

    @property
    def value_alerts(self) -> int:
        return sum(1 for r in self.runners if r.signal is not ValueSignal.NONE)

    @property
    def lays(self) -> list[RunnerEvaluation]:
        return [r for r in self.runners if r.decision.place_lay]


def _null_decision(reasons: list[str]) -> LayDecision:
    return LayDecision(
        p_model=None,
        p_market=None,
        edge=None,
        price_shortened=False,
        has_lay_value=False,
        place_lay=False,
        reasons=reasons,
    )


def evaluate(
    anchor_price: float | None,
    current_execution_price: float | None,
    consensus_price_for_model: float | None,
    sizing_params: SizingParams,
    model_params: ModelParams | None = None,
) -> LayDecision:
    """Decide whether to lay one runner. Pure; never raises.

    The model probability is taken from the consensus price (falling back to
    the execution price); the market probability and the sizing use the
    execution price, because that is where the lay would be matched.
    """
    model_params = model_params or ModelParams()
    if not is_valid_price(current_execution_price):
        return _null_decision([REASON_NO_CURRENT_ODDS])

    odds_for_model = (
        consensus_price_for_model
        if consensus_price_for_model is not None
        else current_execution_price
    )
    p_model = model_probability(odds_for_model, model_params)
    p_market = market_probability(current_execution_price)
    edge = p_market - p_model

    price_shortened = anchor_price is not None and current_execution_price < anchor_price
    has_lay_value = p_model < p_market

    reasons: list[str] = []
    if not price_shortened:
        reasons.append(REASON_PRICE_NOT_SHORTENED)
    if not has_lay_value:
        reasons.append(REASON_NO_LAY_VALUE)

    decision = LayDecision(
        p_model=round4(p_model),
        p_market=round4(p_market),
        edge=round4(edge),
        price_shortened=price_shortened,
        has_lay_value=has_lay_value,
        place_lay=False,
        reasons=reasons,
    )
    if not (price_shortened and has_lay_value):
        return decision

    sizing = size_lay_with(sizing_params, current_execution_price, p_model)
    decision.sizing = sizing
    decision.ev = sizing.ev
    decision.ev_pct_bankroll = sizing.ev_pct_bankroll

    if sizing.kelly_fraction <= 0:
        reasons.append(REASON_NON_POSITIVE_EDGE)
        return decision

    if sizing.below_min_stake:
        reasons.append(
            REASON_BELOW_MIN_STAKE.format(stake=sizing.lay_stake, min_stake=sizing_params.min_stake)
        )
    if not sizing.is_bet:
        reasons.append(REASON_ZERO_STAKE)
    reasons.append(REASON_PLACE_LAY)
    decision.place_lay = True
    return decision


def summarize_runner(
    runner: str,
    observations: Iterable[Observation],
    execution_source: str | None = None,
) -> RunnerPrices:
    """Build the current price snapshot for one runner.

    Invalid (placeholder) prices are ignored everywhere, including at the
    execution venue.
    """
    execution_source = execution_source or settings.execution_source
    quotes = [o for o in observations if o.runner == runner and o.is_valid]

    ordered = sorted(quotes, key=lambda o: o.price)
    best = ordered[0] if ordered else None
    worst = ordered[-1] if ordered else None

    execution = [o.price for o in quotes if o.source == execution_source]

    return RunnerPrices(
        runner=runner,
        consensus_price=mean_price(o.price for o in quotes),
        # Several quotes from the venue in one batch: the latest one is current
        execution_price=execution[-1] if execution else None,
        best_price=best.price if best else None,
        best_source=best.source if best else None,
        worst_price=worst.price if worst else None,
        worst_source=worst.source if worst else None,
        source_count=len(quotes),
    )


class LayEngine:
    """Runs the full cycle for a race: prices -> signal -> model -> sizing.

    Parameters
    ----------
    sizing_params : SizingParams, optional
        Defaults to the configured bankroll and risk limits.
    model_params : ModelParams, optional
        Defaults to the configured alpha/beta.
    thresholds : Thresholds, optional
        Defaults to the configured compression tiers.
    execution_source : str, optional
        Source key of the venue where lays are placed.
    """

    def __init__(
        self,
        sizing_params: SizingParams | None = None,
        model_params: ModelParams | None = None,
        thresholds: Thresholds | None = None,
        execution_source: str | None = None,
    ):
        self.sizing_params = sizing_params or SizingParams.from_settings()
        self.model_params = model_params or ModelParams.from_settings()
        self.thresholds = thresholds or Thresholds.from_settings()
        self.execution_source = execution_source or settings.execution_source

    def evaluate_runner(
        self,
        runner: str,
        observations: Iterable[Observation],
        anchor_price: float | None,
    ) -> RunnerEvaluation:
        prices = summarize_runner(runner, observations, self.execution_source)
        compression, signal = classify(anchor_price, prices.current_price, self.thresholds)
        decision = evaluate(
            anchor_price=anchor_price,
            current_execution_price=prices.current_price,
            consensus_price_for_model=prices.consensus_price,
            sizing_params=self.sizing_params,
            model_params=self.model_params,
        )
        return RunnerEvaluation(
            runner=runner,
            prices=prices,
            anchor_price=anchor_price,
            compression_pct=round4(compression) if compression is not None else None,
            signal=signal,
            decision=decision,
        )

    def evaluate_race(
        self,
        race_id: str,
        observations: Iterable[Observation],
        anchors: Mapping[str, float | None],
    ) -> RaceEvaluation:
        """Evaluate every runner quoted for ``race_id``.

        Runners are ordered strongest signal first, then by name.
        """
        race_obs = [o for o in observations if o.race_id == race_id]
        runner_names = list(dict.fromkeys(o.runner for o in race_obs))

        runners = [
            self.evaluate_runner(name, race_obs, anchors.get(name))
            for name in runner_names
        ]
        runners.sort(key=lambda r: (-r.signal.rank, r.runner))

        current = [r.prices.current_price for r in runners if r.prices.current_price is not None]
        book = round(book_percentage(current), 2) if current else None

        result = RaceEvaluation(race_id=race_id, runners=runners, book_percentage=book)
        log.info(
            "race_evaluated",
            race_id=race_id,
            runners=result.runner_count,
            alerts=result.value_alerts,
            lays=len(result.lays),
        )
        return result

"""Tests for the lay decision engine."""

import pytest

from laywatch.betting.anchors import Observation
from laywatch.betting.engine import LayEngine, evaluate, summarize_runner
from laywatch.betting.probability import ModelParams
from laywatch.betting.signals import Thresholds, ValueSignal
from laywatch.betting.sizing import SizingParams
from laywatch.constants import (
    REASON_NO_CURRENT_ODDS,
    REASON_NO_LAY_VALUE,
    REASON_NON_POSITIVE_EDGE,
    REASON_PLACE_LAY,
    REASON_PRICE_NOT_SHORTENED,
    REASON_ZERO_STAKE,
)


class TestEvaluate:
    """Tests for the per-runner decision state machine."""

    def setup_method(self):
        self.params = SizingParams(
            bankroll=1000.0,
            commission=0.05,
            kelly_multiplier=1.0,
            max_liability_pct=100.0,
            min_stake=2.0,
        )

    def test_no_current_odds(self):
        decision = evaluate(5.0, None, 4.4, self.params)
        assert decision.place_lay is False
        assert decision.reasons == [REASON_NO_CURRENT_ODDS]
        assert decision.p_model is None
        assert decision.p_market is None
        assert decision.edge is None
        assert decision.sizing is None
        assert decision.ev is None

    def test_placeholder_current_odds(self):
        decision = evaluate(5.0, 1.0, 4.4, self.params)
        assert decision.reasons == [REASON_NO_CURRENT_ODDS]

    def test_place_lay(self):
        """Shortened from 5.0 to 4.0 while the consensus still says 4.4."""
        decision = evaluate(5.0, 4.0, 4.4, self.params, ModelParams())
        assert decision.price_shortened is True
        assert decision.has_lay_value is True
        assert decision.place_lay is True
        assert decision.reasons == [REASON_PLACE_LAY]
        assert decision.p_model == pytest.approx(1 / 4.4, abs=1e-4)
        assert decision.p_market == 0.25
        assert decision.edge == pytest.approx(0.25 - 1 / 4.4, abs=1e-4)
        assert decision.sizing is not None
        assert decision.sizing.liability > 0
        assert decision.ev == decision.sizing.ev
        assert decision.ev_pct_bankroll == decision.sizing.ev_pct_bankroll

    def test_price_not_shortened(self):
        decision = evaluate(3.5, 4.0, 4.4, self.params)
        assert decision.price_shortened is False
        assert decision.place_lay is False
        assert REASON_PRICE_NOT_SHORTENED in decision.reasons

    def test_not_evaluated_is_none_not_zero(self):
        """Skipped sizing leaves EV and stake absent rather than zero."""
        decision = evaluate(3.5, 4.0, 4.4, self.params)
        assert decision.sizing is None
        assert decision.ev is None
        assert decision.ev_pct_bankroll is None
        assert decision.p_model is not None  # probabilities were still computed

    def test_no_anchor_is_not_shortened(self):
        decision = evaluate(None, 4.0, 4.4, self.params)
        assert decision.price_shortened is False
        assert decision.place_lay is False

    def test_no_lay_value(self):
        # Consensus 3.8 rates the runner above the 4.0 market price
        decision = evaluate(5.0, 4.0, 3.8, self.params)
        assert decision.has_lay_value is False
        assert decision.reasons == [REASON_NO_LAY_VALUE]
        assert decision.sizing is None

    def test_both_filters_fail(self):
        decision = evaluate(3.0, 4.0, 3.8, self.params)
        assert decision.reasons == [REASON_PRICE_NOT_SHORTENED, REASON_NO_LAY_VALUE]

    def test_commission_removes_edge(self):
        """Value before commission but none after it: sized, not placed."""
        decision = evaluate(5.0, 4.0, 4.1, self.params)
        assert decision.has_lay_value is True
        assert decision.place_lay is False
        assert decision.reasons == [REASON_NON_POSITIVE_EDGE]
        assert decision.sizing is not None
        assert decision.sizing.kelly_fraction == 0.0
        assert decision.ev == 0.0

    def test_below_min_stake_still_places(self):
        capped = SizingParams(
            bankroll=1000.0,
            commission=0.05,
            kelly_multiplier=1.0,
            max_liability_pct=1.0,
            min_stake=5.0,
        )
        decision = evaluate(5.0, 4.0, 4.4, capped)
        assert decision.place_lay is True
        assert decision.sizing.below_min_stake is True
        assert decision.sizing.lay_stake == 3.33
        assert decision.reasons == ["stake 3.33 below minimum 5.00", REASON_PLACE_LAY]

    def test_consensus_falls_back_to_execution_price(self):
        decision = evaluate(5.0, 4.0, None, self.params)
        assert decision.p_model == decision.p_market
        assert decision.has_lay_value is False

    def test_calibrated_model(self):
        # alpha 1.2 lengthens the model price: 1 / (1 + 1.2 * 3)
        decision = evaluate(5.0, 4.0, 4.0, self.params, ModelParams(alpha=1.2, beta=1.0))
        assert decision.p_model == pytest.approx(1 / 4.6, abs=1e-4)
        assert decision.place_lay is True

    def test_extreme_odds_and_beta_do_not_raise(self):
        decision = evaluate(2e6, 1e6, 1e6, self.params, ModelParams(alpha=1.0, beta=60.0))
        assert decision.p_model == 0.0
        assert decision.has_lay_value is True
        assert decision.sizing is not None
        assert decision.reasons[-1] == REASON_PLACE_LAY

    def test_zero_bankroll_is_flagged(self):
        broke = SizingParams(bankroll=0.0, commission=0.05, kelly_multiplier=1.0)
        decision = evaluate(5.0, 4.0, 4.4, broke)
        assert decision.place_lay is True
        assert decision.sizing.is_bet is False
        assert decision.sizing.liability == 0.0
        assert decision.reasons == [REASON_ZERO_STAKE, REASON_PLACE_LAY]

    def test_negative_multiplier_is_flagged(self):
        inverted = SizingParams(bankroll=1000.0, commission=0.05, kelly_multiplier=-0.5)
        decision = evaluate(5.0, 4.0, 4.4, inverted)
        assert decision.sizing.lay_stake == 0.0
        assert decision.ev == 0.0
        assert decision.reasons == [REASON_ZERO_STAKE, REASON_PLACE_LAY]


class TestSummarizeRunner:
    def test_consensus_and_execution(self, race_batch):
        prices = summarize_runner("Galopin Des Champs", race_batch, execution_source="betfair_ex_uk")
        assert prices.consensus_price == pytest.approx((3.5 + 3.25 + 3.4) / 3)
        assert prices.execution_price == 3.4
        assert prices.current_price == 3.4
        assert prices.best_price == 3.25
        assert prices.best_source == "williamhill"
        assert prices.worst_price == 3.5
        assert prices.worst_source == "bet365"
        assert prices.spread == (3.25, 3.5)
        assert prices.source_count == 3

    def test_placeholders_ignored(self, race_batch):
        prices = summarize_runner("Gerri Colombe", race_batch, execution_source="betfair_ex_uk")
        assert prices.consensus_price == pytest.approx(9.5)
        assert prices.source_count == 2

    def test_no_execution_quote_uses_consensus(self, race_batch):
        prices = summarize_runner("Fact To File", race_batch, execution_source="smarkets")
        assert prices.execution_price is None
        assert prices.current_price == pytest.approx((6.0 + 5.5 + 6.2) / 3)

    def test_unknown_runner(self, race_batch):
        prices = summarize_runner("Nobody", race_batch)
        assert prices.current_price is None
        assert prices.spread is None
        assert prices.source_count == 0


class TestLayEngine:
    def setup_method(self):
        self.engine = LayEngine(
            sizing_params=SizingParams(bankroll=1000.0, commission=0.05, kelly_multiplier=1.0),
            model_params=ModelParams(),
            thresholds=Thresholds(conservative=15, strong=25, premium=40),
            execution_source="betfair_ex_uk",
        )

    def test_evaluate_race(self, race_batch):
        anchors = {"Galopin Des Champs": 4.5, "Fact To File": 6.0}
        race = self.engine.evaluate_race("chelt-1530", race_batch, anchors)

        assert race.runner_count == 3
        assert [r.runner for r in race.runners] == ["Galopin Des Champs", "Fact To File", "Gerri Colombe"]

        galopin, fact, gerri = race.runners
        assert galopin.compression_pct == pytest.approx(24.4444, abs=1e-4)
        assert galopin.signal is ValueSignal.CONSERVATIVE
        assert fact.signal is ValueSignal.NONE  # drifted to 6.2
        assert gerri.anchor_price is None
        assert gerri.compression_pct is None
        assert gerri.signal is ValueSignal.NONE

        assert race.value_alerts == 1
        assert race.book_percentage == pytest.approx(55.54)
        assert race.lays == []

    def test_race_with_lay(self, observed_at):
        batch = [
            Observation("ling-1900", "Steamer", "bet365", 4.4, observed_at),
            Observation("ling-1900", "Steamer", "skybet", 4.4, observed_at),
            Observation("ling-1900", "Steamer", "betfair_ex_uk", 4.0, observed_at),
            Observation("ling-1900", "Drifter", "betfair_ex_uk", 3.0, observed_at),
        ]
        race = self.engine.evaluate_race("ling-1900", batch, {"Steamer": 5.0, "Drifter": 2.5})

        assert [r.runner for r in race.lays] == ["Steamer"]
        steamer = race.lays[0]
        assert steamer.compression_pct == pytest.approx(20.0)
        assert steamer.signal is ValueSignal.CONSERVATIVE
        assert steamer.decision.reasons == [REASON_PLACE_LAY]

    def test_other_races_filtered(self, race_batch, observed_at):
        batch = race_batch + [Observation("aintree-1400", "Stranger", "bet365", 4.0, observed_at)]
        race = self.engine.evaluate_race("chelt-1530", batch, {})
        assert "Stranger" not in [r.runner for r in race.runners]

    def test_empty_race(self):
        race = self.engine.evaluate_race("empty", [], {})
        assert race.runners == []
        assert race.book_percentage is None
        assert race.value_alerts == 0

"""Tests for commission-aware Kelly lay sizing."""

import math

import pytest

from laywatch.betting.sizing import (
    SizingParams,
    full_kelly_fraction,
    lay_expected_value,
    lay_liability,
    loss_if_win,
    profit_if_lose,
    size_lay,
    size_lay_with,
)


class TestPayoffs:
    def test_liability(self):
        assert lay_liability(10.0, 4.0) == pytest.approx(30.0)
        assert loss_if_win(10.0, 4.0) == pytest.approx(30.0)

    def test_profit_net_of_commission(self):
        assert profit_if_lose(10.0, 0.05) == pytest.approx(9.5)

    def test_expected_value(self):
        # q * S(1-c) - p * S(O-1) = 0.75 * 9.5 - 0.25 * 30
        assert lay_expected_value(10.0, 4.0, 0.25, 0.05) == pytest.approx(7.125 - 7.5)


class TestFullKellyFraction:
    def test_closed_form(self):
        assert full_kelly_fraction(3.5, 0.2, 0.05) == pytest.approx(0.8 - 0.2 * 2.5 / 0.95)

    def test_commission_shrinks_fraction(self):
        assert full_kelly_fraction(3.5, 0.2, 0.05) < full_kelly_fraction(3.5, 0.2, 0.0)

    def test_degenerate_inputs(self):
        assert full_kelly_fraction(1.0, 0.2, 0.05) == 0.0
        assert full_kelly_fraction(3.0, 0.2, 1.0) == 0.0

    def test_maximises_log_growth(self):
        """f* is the maximiser of q ln(1 + f r) + p ln(1 - f)."""
        p, odds, c = 0.15, 4.0, 0.05
        r = (1 - c) / (odds - 1)

        def growth(f):
            return (1 - p) * math.log(1 + f * r) + p * math.log(1 - f)

        f_star = full_kelly_fraction(odds, p, c)
        assert growth(f_star) > growth(f_star - 0.01)
        assert growth(f_star) > growth(f_star + 0.01)


class TestSizeLay:
    def test_reference_scenario(self):
        """Full Kelly, no caps: B=1000, O=3.5, p=0.2, c=5%."""
        result = size_lay(
            bankroll=1000,
            lay_odds=3.5,
            p_win=0.2,
            commission=0.05,
            kelly_multiplier=1.0,
            max_liability_pct=100,
            min_stake=0,
        )
        assert result.kelly_fraction == 0.2737
        assert result.return_per_liability == 0.38
        assert result.liability == 273.68
        assert result.lay_stake == 109.47
        assert result.profit_if_lose == 104.0
        assert result.loss_if_win == 273.68
        assert result.ev == 28.46
        assert result.ev_pct_bankroll == 2.8463
        assert result.ev_per_liability == 0.104
        assert result.capped_by_max_liability is False
        assert result.below_min_stake is False
        assert result.is_bet

    def test_half_kelly(self):
        result = size_lay(1000, 3.5, 0.2, 0.05, kelly_multiplier=0.5)
        assert result.kelly_fraction == 0.2737  # reported before the multiplier
        assert result.liability == 136.84
        assert result.lay_stake == 54.74

    def test_max_liability_cap(self):
        result = size_lay(1000, 3.5, 0.2, 0.05, kelly_multiplier=1.0, max_liability_pct=5)
        assert result.capped_by_max_liability is True
        assert result.liability == 1000 * 5 / 100
        assert result.lay_stake == 20.0
        assert result.profit_if_lose == 19.0
        assert result.ev == 5.2

    def test_no_leverage(self):
        """Huge edge with a large multiplier never risks more than the bankroll."""
        result = size_lay(500, 1.5, 0.01, 0.0, kelly_multiplier=5.0, max_liability_pct=1000)
        assert result.liability == 500.0
        assert result.lay_stake == 1000.0

    def test_below_min_stake_is_flagged_not_corrected(self):
        result = size_lay(1000, 3.5, 0.2, 0.05, max_liability_pct=5, min_stake=25)
        assert result.below_min_stake is True
        assert result.lay_stake == 20.0

    def test_negative_edge_is_no_bet(self):
        # Break-even at 3.5 with 5% commission is ~27.5%
        result = size_lay(1000, 3.5, 0.3, 0.05)
        assert result.kelly_fraction == 0.0
        assert result.lay_stake == 0.0
        assert result.liability == 0.0
        assert result.ev == 0.0
        assert not result.is_bet

    def test_commission_can_remove_edge(self):
        # p = 0.28 is value at zero commission but not at 5%
        assert size_lay(1000, 3.5, 0.28, 0.0).is_bet
        assert not size_lay(1000, 3.5, 0.28, 0.05).is_bet

    @pytest.mark.parametrize("odds", [1.0, 0.5, 0.0])
    def test_degenerate_odds(self, odds):
        result = size_lay(1000, odds, 0.2, 0.05)
        assert result.kelly_fraction == 0.0
        assert result.liability == 0.0

    def test_zero_bankroll(self):
        result = size_lay(0, 3.5, 0.2, 0.05)
        assert result.liability == 0.0
        assert result.ev_pct_bankroll == 0.0
        assert result.kelly_fraction == 0.2737  # edge still reported

    def test_negative_bankroll_does_not_raise(self):
        assert size_lay(-100, 3.5, 0.2, 0.05).liability == 0.0

    @pytest.mark.parametrize("multiplier", [0.0, -0.5])
    def test_non_positive_multiplier_is_no_bet(self, multiplier):
        result = size_lay(1000, 3.5, 0.2, 0.05, kelly_multiplier=multiplier)
        assert result.lay_stake == 0.0
        assert result.liability == 0.0
        assert result.ev == 0.0
        assert result.kelly_fraction == 0.2737
        assert not result.is_bet

    @pytest.mark.parametrize(
        ("bankroll", "odds", "p_win", "commission", "multiplier", "max_pct"),
        [
            (1000, 3.5, 0.2, 0.05, 1.0, 100),
            (1000, 3.5, 0.2, 0.05, 0.5, 5),
            (2500, 2.2, 0.3, 0.02, 1.0, 50),
            (750, 8.0, 0.06, 0.05, 0.25, 10),
            (123.45, 1.8, 0.4, 0.0, 1.0, 100),
        ],
    )
    def test_reported_ev_matches_reported_payoffs(self, bankroll, odds, p_win, commission, multiplier, max_pct):
        """Rounded stake and liability reproduce the reported EV to the cent."""
        result = size_lay(bankroll, odds, p_win, commission, multiplier, max_pct)
        assert result.is_bet

        recomputed = (1 - p_win) * profit_if_lose(result.lay_stake, commission) - p_win * result.liability
        assert recomputed == pytest.approx(result.ev, abs=0.02)
        assert result.profit_if_lose == pytest.approx(profit_if_lose(result.lay_stake, commission), abs=0.01)
        assert result.loss_if_win == result.liability


class TestSizingParams:
    def test_size_lay_with_params(self):
        params = SizingParams(bankroll=1000, commission=0.05, kelly_multiplier=1.0, max_liability_pct=100)
        assert size_lay_with(params, 3.5, 0.2) == size_lay(1000, 3.5, 0.2, 0.05, 1.0, 100, 0.0)

    def test_from_settings_uses_kelly_mode(self, monkeypatch):
        from laywatch.config import settings

        monkeypatch.setattr(settings, "kelly_mode", "full")
        monkeypatch.setattr(settings, "bankroll", 2000.0)
        params = SizingParams.from_settings()
        assert params.kelly_multiplier == 1.0
        assert params.bankroll == 2000.0

        monkeypatch.setattr(settings, "kelly_mode", "custom")
        monkeypatch.setattr(settings, "kelly_multiplier", 0.3)
        assert SizingParams.from_settings().kelly_multiplier == 0.3

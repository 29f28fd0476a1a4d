"""Bankroll tracking for settled lay bets.

Records each placed lay against the race result and computes P&L, ROI,
yield on liability, max drawdown and losing streaks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

import numpy as np
import pandas as pd

from laywatch.betting.engine import LayDecision
from laywatch.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class LayBetRecord:
    """A settled lay with outcome."""

    race_date: date | None
    race_id: str
    runner: str
    p_model: float
    p_market: float
    edge: float
    lay_stake: float
    liability: float
    bankroll_before: float
    runner_won: bool  # True = the lay lost
    pnl: float
    bankroll_after: float


@dataclass
class BankrollStats:
    """Aggregate performance metrics."""

    initial_bankroll: float
    current_bankroll: float
    total_bets: int
    bets_won: int  # laid runner lost
    bets_lost: int
    win_rate: float
    total_liability: float
    total_pnl: float
    roi_pct: float  # total_pnl / initial_bankroll * 100
    yield_pct: float  # total_pnl / total_liability * 100
    max_drawdown_pct: float
    avg_edge: float
    best_bet_pnl: float
    worst_bet_pnl: float
    longest_losing_streak: int


class BankrollManager:
    """Manages bankroll state and lay history.

    Parameters
    ----------
    initial_bankroll : float
        Starting bankroll amount. Default 1000.
    """

    def __init__(self, initial_bankroll: float = 1000.0):
        self.initial_bankroll = initial_bankroll
        self.current_bankroll = initial_bankroll
        self._peak_bankroll = initial_bankroll
        self._max_drawdown = 0.0
        self.history: list[LayBetRecord] = []

    def settle(
        self,
        race_id: str,
        runner: str,
        decision: LayDecision,
        runner_won: bool,
        race_date: date | None = None,
    ) -> LayBetRecord:
        """Settle a placed lay against the result.

        The lay pays ``profit_if_lose`` (already net of commission) when the
        runner is beaten and costs the full liability when it wins.
        """
        if not decision.place_lay or decision.sizing is None:
            raise ValueError(f"No lay was placed on {runner!r} in race {race_id!r}")

        sizing = decision.sizing
        bankroll_before = self.current_bankroll
        pnl = -sizing.loss_if_win if runner_won else sizing.profit_if_lose

        self.current_bankroll = round(bankroll_before + pnl, 2)

        # Track peak and drawdown
        if self.current_bankroll > self._peak_bankroll:
            self._peak_bankroll = self.current_bankroll
        if self._peak_bankroll > 0:
            drawdown = (self._peak_bankroll - self.current_bankroll) / self._peak_bankroll
            self._max_drawdown = max(self._max_drawdown, drawdown)

        record = LayBetRecord(
            race_date=race_date,
            race_id=race_id,
            runner=runner,
            p_model=decision.p_model,
            p_market=decision.p_market,
            edge=decision.edge,
            lay_stake=sizing.lay_stake,
            liability=sizing.liability,
            bankroll_before=bankroll_before,
            runner_won=runner_won,
            pnl=pnl,
            bankroll_after=self.current_bankroll,
        )
        self.history.append(record)
        log.info("lay_settled", race_id=race_id, runner=runner, pnl=pnl, bankroll=self.current_bankroll)
        return record

    def get_stats(self) -> BankrollStats:
        """Compute aggregate performance statistics."""
        if not self.history:
            return BankrollStats(
                initial_bankroll=self.initial_bankroll,
                current_bankroll=self.current_bankroll,
                total_bets=0,
                bets_won=0,
                bets_lost=0,
                win_rate=0.0,
                total_liability=0.0,
                total_pnl=0.0,
                roi_pct=0.0,
                yield_pct=0.0,
                max_drawdown_pct=0.0,
                avg_edge=0.0,
                best_bet_pnl=0.0,
                worst_bet_pnl=0.0,
                longest_losing_streak=0,
            )

        wins = [r for r in self.history if not r.runner_won]
        pnls = [r.pnl for r in self.history]
        total_liability = sum(r.liability for r in self.history)
        total_pnl = sum(pnls)

        # Longest losing streak
        max_streak = 0
        current_streak = 0
        for r in self.history:
            if r.runner_won:
                current_streak += 1
                max_streak = max(max_streak, current_streak)
            else:
                current_streak = 0

        return BankrollStats(
            initial_bankroll=self.initial_bankroll,
            current_bankroll=self.current_bankroll,
            total_bets=len(self.history),
            bets_won=len(wins),
            bets_lost=len(self.history) - len(wins),
            win_rate=round(len(wins) / len(self.history), 4),
            total_liability=round(total_liability, 2),
            total_pnl=round(total_pnl, 2),
            roi_pct=round(total_pnl / self.initial_bankroll * 100, 2) if self.initial_bankroll > 0 else 0.0,
            yield_pct=round(total_pnl / total_liability * 100, 2) if total_liability > 0 else 0.0,
            max_drawdown_pct=round(self._max_drawdown * 100, 2),
            avg_edge=round(float(np.mean([r.edge for r in self.history])), 4),
            best_bet_pnl=round(max(pnls), 2),
            worst_bet_pnl=round(min(pnls), 2),
            longest_losing_streak=max_streak,
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Convert lay history to a DataFrame."""
        if not self.history:
            return pd.DataFrame()
        return pd.DataFrame([
            {
                "race_date": r.race_date,
                "race_id": r.race_id,
                "runner": r.runner,
                "p_model": r.p_model,
                "p_market": r.p_market,
                "edge": r.edge,
                "lay_stake": r.lay_stake,
                "liability": r.liability,
                "bankroll_before": r.bankroll_before,
                "runner_won": r.runner_won,
                "pnl": r.pnl,
                "bankroll_after": r.bankroll_after,
            }
            for r in self.history
        ])

"""Calibration diagnostics and fitting for the win-probability model.

Answers: is P(win) = 1/(1 + alpha*(O-1)^beta) well calibrated against
settled results, and which (alpha, beta) fit them best?
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from scipy.optimize import minimize

from laywatch.betting.probability import ModelParams
from laywatch.utils.logging import get_logger

log = get_logger(__name__)

_EPS = 1e-9


def model_probability_array(odds: np.ndarray, params: ModelParams) -> np.ndarray:
    """Vectorised ``model_probability``; odds <= 1 map to 1.0."""
    odds = np.asarray(odds, dtype=float)
    x = np.clip(odds - 1, 0.0, None)
    p = 1.0 / (1.0 + params.alpha * np.power(x, params.beta))
    return np.where(odds <= 1, 1.0, p)


class CalibrationAnalyzer:
    """Compares model probabilities with settled outcomes.

    Parameters
    ----------
    results : pd.DataFrame
        One row per settled runner with columns ``decimal_odds`` (the price
        the model was fed) and ``won`` (bool or 0/1).
    """

    def __init__(self, results: pd.DataFrame):
        missing = {"decimal_odds", "won"} - set(results.columns)
        if missing:
            raise ValueError(f"Columns {sorted(missing)} not found in data")

        df = results.dropna(subset=["decimal_odds", "won"]).copy()
        df = df[df["decimal_odds"] > 1]
        df["won"] = df["won"].astype(float)
        self.results = df.reset_index(drop=True)

    def calibration_report(self, params: ModelParams | None = None, n_bins: int = 10) -> pd.DataFrame:
        """Predicted vs actual win rate per probability bin.

        A well-calibrated model: runners it rates at 20% win ~20% of the time.
        """
        params = params or ModelParams()
        df = self.results.copy()
        df["p_model"] = model_probability_array(df["decimal_odds"].to_numpy(), params)
        df["prob_bin"] = pd.cut(df["p_model"], bins=n_bins)

        cal = (
            df.groupby("prob_bin", observed=True)
            .agg(
                count=("won", "count"),
                actual_win_rate=("won", "mean"),
                predicted_prob=("p_model", "mean"),
            )
            .assign(
                calibration_error=lambda d: (d["predicted_prob"] - d["actual_win_rate"]).abs(),
            )
            .reset_index()
        )

        # Expected calibration error
        if len(cal):
            weights = cal["count"] / cal["count"].sum()
            ece = float((weights * cal["calibration_error"]).sum())
        else:
            ece = 0.0
        log.info("calibration_report", alpha=params.alpha, beta=params.beta, ece=round(ece, 4), n_bins=n_bins)
        return cal

    def log_loss(self, params: ModelParams) -> float:
        """Mean negative log-likelihood of the outcomes under ``params``."""
        p = model_probability_array(self.results["decimal_odds"].to_numpy(), params)
        p = np.clip(p, _EPS, 1 - _EPS)
        y = self.results["won"].to_numpy()
        return float(-np.mean(y * np.log(p) + (1 - y) * np.log(1 - p)))

    def fit_model_params(self, initial: ModelParams | None = None) -> ModelParams:
        """Fit (alpha, beta) by minimising log-loss, both kept positive."""
        if self.results.empty:
            raise ValueError("No settled runners with valid odds to fit")

        initial = initial or ModelParams()
        fit = minimize(
            lambda theta: self.log_loss(ModelParams(alpha=theta[0], beta=theta[1])),
            x0=np.array([initial.alpha, initial.beta]),
            method="L-BFGS-B",
            bounds=[(1e-6, None), (1e-6, None)],
        )
        params = ModelParams(alpha=float(fit.x[0]), beta=float(fit.x[1]))
        log.info(
            "model_params_fitted",
            alpha=round(params.alpha, 4),
            beta=round(params.beta, 4),
            log_loss=round(float(fit.fun), 5),
            runners=len(self.results),
            converged=bool(fit.success),
        )
        return params

"""Lay engine: anchoring, compression signals, probability model, Kelly sizing."""

from laywatch.betting.anchors import AnchorResolution, Observation, flag_opening_rows, resolve_anchors
from laywatch.betting.bankroll import BankrollManager, BankrollStats, LayBetRecord
from laywatch.betting.engine import (
    LayDecision,
    LayEngine,
    RaceEvaluation,
    RunnerEvaluation,
    RunnerPrices,
    evaluate,
    summarize_runner,
)
from laywatch.betting.probability import (
    ModelParams,
    break_even_probability,
    market_probability,
    model_probability,
)
from laywatch.betting.signals import Thresholds, ValueSignal, classify, price_compression
from laywatch.betting.sizing import SizingParams, SizingResult, size_lay

__all__ = [
    "AnchorResolution",
    "BankrollManager",
    "BankrollStats",
    "LayBetRecord",
    "LayDecision",
    "LayEngine",
    "ModelParams",
    "Observation",
    "RaceEvaluation",
    "RunnerEvaluation",
    "RunnerPrices",
    "SizingParams",
    "SizingResult",
    "Thresholds",
    "ValueSignal",
    "break_even_probability",
    "classify",
    "evaluate",
    "flag_opening_rows",
    "market_probability",
    "model_probability",
    "price_compression",
    "resolve_anchors",
    "size_lay",
    "summarize_runner",
]

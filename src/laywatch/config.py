"""Application configuration via Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

from laywatch.constants import (
    DEFAULT_COMMISSION,
    DEFAULT_EXECUTION_SOURCE,
    DEFAULT_MIN_STAKE,
    KELLY_MODE_MULTIPLIERS,
)


class Settings(BaseSettings):
    """Central configuration loaded from environment variables and .env file.

    Values are taken literally. Thresholds are not checked for ordering and
    model parameters are not checked for positivity; see DESIGN.md.
    """

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "LAYWATCH_"}

    # Paths
    project_root: Path = Path(__file__).resolve().parent.parent.parent
    data_dir: Path = Path(__file__).resolve().parent.parent.parent / "data"

    # DuckDB
    duckdb_path: Path = Path(__file__).resolve().parent.parent.parent / "data" / "laywatch.duckdb"

    # The Odds API
    odds_api_key: str = ""
    odds_api_base_url: str = "https://api.the-odds-api.com/v4"
    odds_api_sport: str = "horse_racing"
    odds_api_regions: str = "uk"

    # Market
    execution_source: str = DEFAULT_EXECUTION_SOURCE
    field_size_min: int = 2
    field_size_max: int = 30

    # Compression thresholds (percent)
    threshold_conservative: float = 15.0
    threshold_strong: float = 25.0
    threshold_premium: float = 40.0

    # Bankroll and sizing
    bankroll: float = 1000.0
    currency: str = "GBP"
    commission: float = DEFAULT_COMMISSION
    kelly_mode: Literal["full", "half", "custom"] = "half"
    kelly_multiplier: float = 0.5
    max_liability_pct: float = 5.0
    min_stake: float = DEFAULT_MIN_STAKE

    # Probability model: P(win) = 1 / (1 + alpha * (O - 1)^beta)
    model_alpha: float = 1.0
    model_beta: float = 1.0

    @property
    def db_path_str(self) -> str:
        return str(self.duckdb_path)

    @property
    def resolved_kelly_multiplier(self) -> float:
        """Multiplier for the configured Kelly mode ("custom" uses kelly_multiplier)."""
        if self.kelly_mode == "custom":
            return self.kelly_multiplier
        return KELLY_MODE_MULTIPLIERS[self.kelly_mode]

    def within_field_size(self, runner_count: int) -> bool:
        return self.field_size_min <= runner_count <= self.field_size_max

    def ensure_dirs(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.duckdb_path.parent.mkdir(parents=True, exist_ok=True)


settings = Settings()

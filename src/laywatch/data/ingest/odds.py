"""Provider payloads -> Observations.

Two upstream schemas are known and each is parsed by its own function,
picked once by ``OddsProvider``:

- The Odds API (https://the-odds-api.com/): events -> bookmakers ->
  markets (h2h) -> outcomes {name, price}
- The Racing API (https://www.theracingapi.com/): racecards -> runners ->
  odds {bookmaker, decimal}

Placeholder prices (0, "SP", "-", ...) are dropped here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx

from laywatch.betting.anchors import Observation
from laywatch.config import settings
from laywatch.utils.logging import get_logger
from laywatch.utils.stats import is_valid_price

log = get_logger(__name__)

MARKETS = "h2h"  # win market


class OddsProvider(str, Enum):
    ODDS_API = "odds_api"
    RACING_API = "racing_api"


@dataclass
class RaceCard:
    """One race as delivered by a provider, normalised."""

    race_id: str
    race_name: str
    commence_time: str
    runners: list[str] = field(default_factory=list)  # every runner listed, priced or not
    observations: list[Observation] = field(default_factory=list)

    @property
    def runner_count(self) -> int:
        return len(self.runners)


@dataclass(frozen=True)
class ApiUsage:
    """Request quota reported by The Odds API on a response."""

    requests_remaining: int | None = None
    requests_used: int | None = None

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> ApiUsage:
        return cls(
            requests_remaining=_to_int(headers.get("x-requests-remaining")),
            requests_used=_to_int(headers.get("x-requests-used")),
        )


def _to_int(value: str | None) -> int | None:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


def _to_price(value: Any) -> float | None:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if is_valid_price(price) else None


def _parse_timestamp(value: Any, default: datetime) -> datetime:
    if not value:
        return default
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return default


def _add_runner(card: RaceCard, name: str) -> None:
    if name and name not in card.runners:
        card.runners.append(name)


def _parse_odds_api(events: list[dict], captured_at: datetime) -> list[RaceCard]:
    cards = []
    for event in events:
        race_id = str(event.get("id", ""))
        card = RaceCard(
            race_id=race_id,
            race_name=event.get("home_team") or event.get("sport_title") or "Unknown Race",
            commence_time=event.get("commence_time", ""),
        )
        for bookmaker in event.get("bookmakers", []):
            source = bookmaker.get("key", "")
            observed_at = _parse_timestamp(bookmaker.get("last_update"), captured_at)
            for market in bookmaker.get("markets", []):
                if market.get("key") != MARKETS:
                    continue
                for outcome in market.get("outcomes", []):
                    name = outcome.get("name", "")
                    _add_runner(card, name)
                    price = _to_price(outcome.get("price"))
                    if price is None:
                        continue
                    card.observations.append(
                        Observation(race_id=race_id, runner=name, source=source, price=price, observed_at=observed_at)
                    )
        cards.append(card)
    return cards


def _parse_racing_api(payload: dict, captured_at: datetime) -> list[RaceCard]:
    cards = []
    for racecard in payload.get("racecards", []):
        race_id = str(racecard.get("race_id", ""))
        course = racecard.get("course", "")
        off_time = racecard.get("off_time", "")
        card = RaceCard(
            race_id=race_id,
            race_name=f"{course} {off_time}".strip() or racecard.get("race_name", "Unknown Race"),
            commence_time=racecard.get("off_dt") or off_time,
        )
        for runner in racecard.get("runners", []):
            name = runner.get("horse", "")
            _add_runner(card, name)
            for quote in runner.get("odds") or []:
                price = _to_price(quote.get("decimal"))
                if price is None:
                    continue
                card.observations.append(
                    Observation(
                        race_id=race_id,
                        runner=name,
                        source=quote.get("bookmaker", ""),
                        price=price,
                        observed_at=_parse_timestamp(quote.get("updated"), captured_at),
                    )
                )
        cards.append(card)
    return cards


def parse_events(
    payload: list[dict] | dict,
    provider: OddsProvider,
    captured_at: datetime | None = None,
) -> list[RaceCard]:
    """Normalise a provider payload into race cards with observations."""
    captured_at = captured_at or datetime.now(timezone.utc)
    provider = OddsProvider(provider)
    if provider is OddsProvider.ODDS_API:
        cards = _parse_odds_api(payload, captured_at)
    else:
        cards = _parse_racing_api(payload, captured_at)
    log.info(
        "events_parsed",
        provider=provider.value,
        races=len(cards),
        observations=sum(len(c.observations) for c in cards),
    )
    return cards


class OddsClient:
    """Client for The Odds API v4 (horse racing win markets)."""

    def __init__(self, api_key: str | None = None, timeout: float = 30):
        self.api_key = api_key or settings.odds_api_key
        self.base_url = settings.odds_api_base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout)

    def get_events(
        self,
        sport: str | None = None,
        regions: str | None = None,
    ) -> tuple[list[dict], ApiUsage]:
        """Fetch current decimal odds for upcoming races.

        Returns the raw event list and the quota reported with it.
        """
        if not self.api_key:
            log.warning("odds_api_key_not_set")
            return [], ApiUsage()

        response = self.client.get(
            f"{self.base_url}/sports/{sport or settings.odds_api_sport}/odds",
            params={
                "apiKey": self.api_key,
                "regions": regions or settings.odds_api_regions,
                "markets": MARKETS,
                "oddsFormat": "decimal",
            },
        )
        response.raise_for_status()

        usage = ApiUsage.from_headers(response.headers)
        events = response.json()
        log.info("odds_fetched", events=len(events), remaining=usage.requests_remaining)
        return events, usage

    def close(self) -> None:
        self.client.close()

"""Opening-price anchoring.

Each (race, runner) gets exactly one opening anchor: the consensus (mean) of
all valid source prices in the first batch where the runner shows a usable
price. Once written the anchor is read-only and every later comparison is
made against it, whatever the market does afterwards.

The resolver only *proposes* anchors. Two overlapping refresh cycles can
both see "no anchor yet" for the same runner, so the store claims anchors
with an atomic insert-if-absent on (race_id, runner_name) and only the
winning claim is flagged as opening (see ``laywatch.data.snapshots``).
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from laywatch.utils.logging import get_logger
from laywatch.utils.stats import is_valid_price, mean_price

log = get_logger(__name__)


@dataclass(frozen=True)
class Observation:
    """One reported decimal price for one runner from one source."""

    race_id: str
    runner: str
    source: str
    price: float
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_valid(self) -> bool:
        return is_valid_price(self.price)


@dataclass(frozen=True)
class AnchorResolution:
    """Resolver verdict for one runner in one batch."""

    runner: str
    is_new_anchor: bool
    anchor_price: float | None  # None when an existing anchor's price wasn't supplied
    source_count: int = 0  # valid prices behind a new anchor


def resolve_anchors(
    race_id: str,
    observations: Sequence[Observation],
    already_opened: Collection[str] | Mapping[str, float | None],
) -> dict[str, AnchorResolution]:
    """Decide the opening anchor for every runner in this batch.

    Parameters
    ----------
    race_id : str
        Race being resolved. Observations for other races are ignored.
    observations : sequence of Observation
        The current batch, in processing order.
    already_opened : collection or mapping
        Runners that already have a persisted anchor. A mapping of
        runner -> recorded anchor price also carries the authoritative price.

    Returns
    -------
    dict of runner -> AnchorResolution. Runners whose prices in this batch
    are all invalid are omitted (no data this cycle).
    """
    known_prices = already_opened if isinstance(already_opened, Mapping) else {}

    by_runner: dict[str, list[float]] = {}
    for obs in observations:
        if obs.race_id != race_id:
            continue
        by_runner.setdefault(obs.runner, []).append(obs.price)

    resolutions: dict[str, AnchorResolution] = {}
    for runner, prices in by_runner.items():
        if runner in already_opened:
            resolutions[runner] = AnchorResolution(
                runner=runner,
                is_new_anchor=False,
                anchor_price=known_prices.get(runner),
            )
            continue

        consensus = mean_price(prices)
        if consensus is None:
            continue
        resolutions[runner] = AnchorResolution(
            runner=runner,
            is_new_anchor=True,
            anchor_price=consensus,
            source_count=sum(1 for p in prices if is_valid_price(p)),
        )

    new = sum(1 for r in resolutions.values() if r.is_new_anchor)
    log.debug("anchors_resolved", race_id=race_id, runners=len(resolutions), new=new)
    return resolutions


def flag_opening_rows(
    race_id: str,
    observations: Sequence[Observation],
    resolutions: Mapping[str, AnchorResolution],
) -> list[bool]:
    """Per-observation ``is_opening`` flags for persistence.

    Only the first valid observation of each newly anchored runner is
    flagged; duplicates later in the same batch are not.
    """
    flagged: set[str] = set()
    flags = []
    for obs in observations:
        resolution = resolutions.get(obs.runner)
        is_opening = (
            obs.race_id == race_id
            and resolution is not None
            and resolution.is_new_anchor
            and obs.is_valid
            and obs.runner not in flagged
        )
        if is_opening:
            flagged.add(obs.runner)
        flags.append(is_opening)
    return flags

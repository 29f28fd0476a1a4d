"""Snapshot store: audit history of observations and set-once opening anchors.

Anchors are claimed with a single atomic ``INSERT ... ON CONFLICT DO
NOTHING``, never with a read-then-write check. If another cycle claimed
the runner first, our insert returns nothing and the stored anchor wins.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pandas as pd

from laywatch.betting.anchors import AnchorResolution, Observation, flag_opening_rows, resolve_anchors
from laywatch.data.db import fetch_df, get_connection, transaction
from laywatch.utils.logging import get_logger

log = get_logger(__name__)

_SNAPSHOT_COLUMNS = [
    "race_id",
    "race_name",
    "source",
    "runner_name",
    "price",
    "is_opening",
    "observed_at",
    "captured_at",
]


@dataclass
class BatchResult:
    """Outcome of recording one observation batch for a race."""

    race_id: str
    saved: int
    new_openings: list[str] = field(default_factory=list)
    anchors: dict[str, float] = field(default_factory=dict)  # authoritative, post-write


def _utc_naive(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def load_anchors(race_id: str) -> dict[str, float]:
    """Recorded opening price per runner for a race."""
    rows = get_connection().execute(
        "SELECT runner_name, anchor_price FROM opening_anchors WHERE race_id = ?",
        [race_id],
    ).fetchall()
    return {runner: price for runner, price in rows}


def claim_anchor(race_id: str, resolution: AnchorResolution, opened_at: datetime | None = None) -> bool:
    """Try to write the opening anchor for one runner.

    Returns True only if this call created the row.
    """
    opened_at = _utc_naive(opened_at or datetime.now(timezone.utc))
    row = get_connection().execute(
        """
        INSERT INTO opening_anchors (race_id, runner_name, anchor_price, source_count, opened_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT DO NOTHING
        RETURNING runner_name
        """,
        [race_id, resolution.runner, resolution.anchor_price, resolution.source_count, opened_at],
    ).fetchone()
    return row is not None


def record_batch(
    race_id: str,
    observations: Sequence[Observation],
    race_name: str = "",
) -> BatchResult:
    """Persist a batch and establish anchors for first-seen runners.

    Only valid observations for ``race_id`` are stored. At most one row per
    runner is ever flagged ``is_opening``, even if two cycles race. Anchor
    claims and snapshot rows commit together or not at all.
    """
    captured_at = _utc_naive(datetime.now(timezone.utc))

    with transaction() as conn:
        existing = load_anchors(race_id)
        proposed = resolve_anchors(race_id, observations, existing)

        # Keep a resolution as "new" only where our claim actually won.
        effective: dict[str, AnchorResolution] = {}
        new_openings = []
        for runner, resolution in proposed.items():
            if resolution.is_new_anchor and claim_anchor(race_id, resolution, captured_at):
                effective[runner] = resolution
                new_openings.append(runner)
            elif resolution.is_new_anchor:
                log.info("anchor_claim_lost", race_id=race_id, runner=runner)
                effective[runner] = AnchorResolution(runner=runner, is_new_anchor=False, anchor_price=None)
            else:
                effective[runner] = resolution

        flags = flag_opening_rows(race_id, observations, effective)
        rows = [
            {
                "race_id": race_id,
                "race_name": race_name,
                "source": obs.source,
                "runner_name": obs.runner,
                "price": float(obs.price),
                "is_opening": flag,
                "observed_at": _utc_naive(obs.observed_at),
                "captured_at": captured_at,
            }
            for obs, flag in zip(observations, flags)
            if obs.race_id == race_id and obs.is_valid
        ]

        if rows:
            batch_df = pd.DataFrame(rows, columns=_SNAPSHOT_COLUMNS)
            conn.register("batch_df", batch_df)
            try:
                conn.execute(
                    f"INSERT INTO odds_snapshots ({', '.join(_SNAPSHOT_COLUMNS)}) "
                    f"SELECT {', '.join(_SNAPSHOT_COLUMNS)} FROM batch_df"
                )
            finally:
                conn.unregister("batch_df")

    anchors = load_anchors(race_id)
    log.info("snapshots_stored", race_id=race_id, rows=len(rows), new_openings=len(new_openings))
    return BatchResult(race_id=race_id, saved=len(rows), new_openings=new_openings, anchors=anchors)


def runner_history(race_id: str, runner: str | None = None) -> pd.DataFrame:
    """Stored snapshots for a race (optionally one runner), oldest first."""
    sql = "SELECT * FROM odds_snapshots WHERE race_id = ?"
    params: list = [race_id]
    if runner is not None:
        sql += " AND runner_name = ?"
        params.append(runner)
    sql += " ORDER BY observed_at, id"
    return fetch_df(sql, params)

"""DuckDB schema definitions and migration."""

from laywatch.data.db import execute


def create_all_tables() -> None:
    """Create all database tables if they don't exist."""
    _create_odds_snapshots_table()
    _create_opening_anchors_table()


def _create_odds_snapshots_table() -> None:
    # Audit history: every valid observation, one row per source quote.
    # Timestamps are naive UTC.
    execute("CREATE SEQUENCE IF NOT EXISTS odds_snapshots_id_seq START 1")
    execute("""
        CREATE TABLE IF NOT EXISTS odds_snapshots (
            id BIGINT PRIMARY KEY DEFAULT nextval('odds_snapshots_id_seq'),
            race_id VARCHAR NOT NULL,
            race_name VARCHAR,
            source VARCHAR NOT NULL,
            runner_name VARCHAR NOT NULL,
            price DOUBLE NOT NULL,
            is_opening BOOLEAN DEFAULT FALSE,
            observed_at TIMESTAMP NOT NULL,
            captured_at TIMESTAMP NOT NULL
        )
    """)
    execute("""
        CREATE INDEX IF NOT EXISTS idx_snapshots_race
        ON odds_snapshots (race_id, runner_name)
    """)


def _create_opening_anchors_table() -> None:
    # One row per (race, runner), ever. The primary key is what makes
    # concurrent first-anchor claims safe.
    execute("""
        CREATE TABLE IF NOT EXISTS opening_anchors (
            race_id VARCHAR NOT NULL,
            runner_name VARCHAR NOT NULL,
            anchor_price DOUBLE NOT NULL,
            source_count INTEGER NOT NULL,
            opened_at TIMESTAMP NOT NULL,
            PRIMARY KEY (race_id, runner_name)
        )
    """)

"""Shared pytest fixtures for laywatch tests."""

from __future__ import annotations

from datetime import datetime, timezone

import duckdb
import pytest

from laywatch.betting.anchors import Observation
from laywatch.data.schema import create_all_tables


@pytest.fixture
def db(tmp_path):
    """Create a temporary DuckDB database with all tables."""
    db_path = tmp_path / "test.duckdb"
    conn = duckdb.connect(str(db_path))

    # Monkey-patch the db module to use our test connection
    import laywatch.data.db as db_module

    original = db_module._connection
    db_module._connection = conn

    # Create all tables
    create_all_tables()

    yield conn

    # Restore original connection
    db_module._connection = original
    conn.close()


@pytest.fixture
def observed_at():
    return datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def race_batch(observed_at):
    """One refresh cycle for a three-runner race, priced by three sources."""
    quotes = [
        ("Galopin Des Champs", "bet365", 3.5),
        ("Galopin Des Champs", "williamhill", 3.25),
        ("Galopin Des Champs", "betfair_ex_uk", 3.4),
        ("Fact To File", "bet365", 6.0),
        ("Fact To File", "williamhill", 5.5),
        ("Fact To File", "betfair_ex_uk", 6.2),
        ("Gerri Colombe", "bet365", 9.0),
        ("Gerri Colombe", "williamhill", 0.0),  # placeholder
        ("Gerri Colombe", "betfair_ex_uk", 10.0),
    ]
    return [
        Observation(race_id="chelt-1530", runner=runner, source=source, price=price, observed_at=observed_at)
        for runner, source, price in quotes
    ]

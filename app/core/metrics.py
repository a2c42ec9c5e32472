"""
Prometheus metrics for the league stats service.

Metrics exposed:
- Engine run counters and latency histograms (per engine)
- Records skipped because a name or team could not be resolved
- Stat rows written, finals generated and prizes awarded
- Database connection pool gauges
"""
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Gauge, Histogram

# Engine runs
engine_runs_total = Counter(
    "league_engine_runs_total",
    "Total aggregation engine runs",
    ["engine", "outcome"]
)

engine_duration_seconds = Histogram(
    "league_engine_duration_seconds",
    "Aggregation engine latency in seconds",
    ["engine"]
)

# Lossy joins
unresolved_references_total = Counter(
    "league_unresolved_references_total",
    "Records skipped because a reference could not be resolved",
    ["kind"]  # player_name, ambiguous_name, team_name
)

# Write-side results
stat_rows_written_total = Counter(
    "league_stat_rows_written_total",
    "Stat rows upserted by the per-match aggregator"
)

finals_generated_total = Counter(
    "league_finals_generated_total",
    "Final matches auto-scheduled after a completed group stage"
)

prizes_awarded_total = Counter(
    "league_prizes_awarded_total",
    "Tournament prize rows written",
    ["category"]
)

# Database Metrics
db_pool_connections = Gauge(
    "db_pool_connections",
    "Number of database connections in the pool"
)

db_pool_connections_checked_out = Gauge(
    "db_pool_connections_checked_out",
    "Number of checked out database connections"
)


@contextmanager
def track_engine(engine: str) -> Iterator[None]:
    """
    Time an engine run and count its outcome.

    Usage:
        with track_engine("standings"):
            ...
    """
    with engine_duration_seconds.labels(engine=engine).time():
        try:
            yield
        except Exception:
            engine_runs_total.labels(engine=engine, outcome="error").inc()
            raise
    engine_runs_total.labels(engine=engine, outcome="success").inc()


def record_unresolved(kind: str) -> None:
    """Count one record dropped by a lossy name/team join."""
    unresolved_references_total.labels(kind=kind).inc()


def record_prize(category: str) -> None:
    """Count one prize row written for ``category``."""
    prizes_awarded_total.labels(category=category).inc()


def update_db_pool_metrics():
    """
    Update database connection pool metrics from the SQLAlchemy engine.

    Pools without sizing information (SQLite's StaticPool/NullPool) are skipped.
    """
    from app.core.database import engine

    pool = engine.pool
    try:
        db_pool_connections.set(pool.size())
        db_pool_connections_checked_out.set(pool.checkedout())
    except AttributeError:
        pass

"""
Prometheus metrics for the league statistics engine.

Metrics exposed:
- Match results applied / reverted
- Dangling references skipped while applying a match
- Optimistic concurrency conflicts on the stats guard
- Statistics drift found by recompute passes
- Standings computation latency
"""
from prometheus_client import Counter, Histogram

# Match result application
match_results_applied_total = Counter(
    "match_results_applied_total",
    "Completed matches whose deltas were applied to team and player statistics"
)

match_results_reverted_total = Counter(
    "match_results_reverted_total",
    "Applied matches whose deltas were reverted"
)

stats_dangling_references_total = Counter(
    "stats_dangling_references_total",
    "Event or team references skipped because the record no longer exists",
    ["kind"]
)

stats_conflicts_total = Counter(
    "stats_conflicts_total",
    "Concurrent modification conflicts on the match stats guard",
    ["operation"]
)

# Drift repair
stats_drift_detected_total = Counter(
    "stats_drift_detected_total",
    "Cached counters that disagreed with values rebuilt from source",
    ["entity"]
)

# Standings
standings_computation_seconds = Histogram(
    "standings_computation_seconds",
    "Time spent loading a season snapshot and ranking its teams"
)


def record_omissions(omissions) -> None:
    """Count skipped references by kind."""
    for omission in omissions:
        stats_dangling_references_total.labels(kind=omission.kind).inc()


def record_conflict(operation: str) -> None:
    """Count a lost compare-and-swap on the stats guard."""
    stats_conflicts_total.labels(operation=operation).inc()


def record_drift(entity: str) -> None:
    """Count a team or player whose cached counters drifted."""
    stats_drift_detected_total.labels(entity=entity).inc()

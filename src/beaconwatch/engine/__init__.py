"""Sighting reconciliation: dedup policy, cache and engine."""

from beaconwatch.engine.cache import CacheEntry, Decision, DedupCache
from beaconwatch.engine.policy import DEFAULT_WINDOW, Action, decide, elapsed_minutes
from beaconwatch.engine.reconciler import ReconcileResult, ReconciliationEngine

__all__ = [
    "DEFAULT_WINDOW",
    "Action",
    "CacheEntry",
    "Decision",
    "DedupCache",
    "ReconcileResult",
    "ReconciliationEngine",
    "decide",
    "elapsed_minutes",
]

"""beaconwatch metrics and observability.

Example:
    >>> from beaconwatch.metrics import EngineMetrics
    >>> metrics = EngineMetrics()
    >>> metrics.record_failure("insert")
    >>> print(metrics.summary())  # doctest: +ELLIPSIS
    Reconciliation Summary
    ...
"""

from beaconwatch.metrics.collector import EngineMetrics, MetricsSummary

__all__ = [
    "EngineMetrics",
    "MetricsSummary",
]

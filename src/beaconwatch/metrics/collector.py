"""Metrics collector for the reconciliation engine.

Counts what the engine decided for each sighting and how persistence went,
so that drift between the dedup cache and the store is visible rather than
silent. Supports optional Prometheus integration.

Example:
    >>> from beaconwatch.metrics import EngineMetrics
    >>>
    >>> metrics = EngineMetrics()
    >>> metrics.record_sighting()
    >>> metrics.record_action("insert")
    >>> with metrics.time_operation("insert"):
    ...     pass
    >>> metrics.summary().inserts
    1
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger("beaconwatch.metrics")


@dataclass
class MetricsSummary:
    """Summary of collected metrics.

    Attributes:
        sightings: Sightings processed by the engine
        inserts: Insert commands emitted
        updates: Update commands emitted
        absorbed: Duplicates absorbed without a command
        persistence_failures: Commands whose store call failed
        failures_by_operation: Failures grouped by "insert"/"update"
        operation_times: Total store time by operation
        operation_counts: Store calls timed, by operation
    """

    sightings: int = 0
    inserts: int = 0
    updates: int = 0
    absorbed: int = 0
    persistence_failures: int = 0
    failures_by_operation: dict[str, int] = field(default_factory=dict)
    operation_times: dict[str, float] = field(default_factory=dict)
    operation_counts: dict[str, int] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format summary as human-readable string."""
        lines = [
            "Reconciliation Summary",
            "=" * 40,
            f"Sightings: {self.sightings:,}",
            f"Inserts: {self.inserts:,}",
            f"Updates: {self.updates:,}",
            f"Absorbed: {self.absorbed:,}",
            f"Persistence failures: {self.persistence_failures}",
        ]
        if self.failures_by_operation:
            lines.append("\nFailures by operation:")
            for op, count in sorted(self.failures_by_operation.items()):
                lines.append(f"  {op}: {count}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert summary to dictionary for JSON serialization."""
        return {
            "sightings": self.sightings,
            "inserts": self.inserts,
            "updates": self.updates,
            "absorbed": self.absorbed,
            "persistence_failures": self.persistence_failures,
            "failures_by_operation": self.failures_by_operation,
            "operation_times": self.operation_times,
            "operation_counts": self.operation_counts,
        }


class EngineMetrics:
    """Collects reconciliation metrics.

    Thread-safe counters with optional Prometheus export.

    Example:
        >>> metrics = EngineMetrics()
        >>> metrics.record_action("absorb")
        >>> metrics.record_failure("update")
        >>> metrics.summary().persistence_failures
        1

    Attributes:
        prometheus_enabled: Whether Prometheus metrics are enabled
    """

    def __init__(
        self,
        enable_prometheus: bool = False,
        prometheus_prefix: str = "beaconwatch",
        registry: Any = None,
    ):
        """Initialize metrics collector.

        Args:
            enable_prometheus: If True, also export to Prometheus
                              (requires prometheus_client package)
            prometheus_prefix: Prefix for Prometheus metric names
            registry: Prometheus registry to register with; a private
                      ``CollectorRegistry`` is created if omitted
        """
        self._lock = threading.Lock()
        self._sightings = 0
        self._actions: dict[str, int] = defaultdict(int)
        self._failures: dict[str, int] = defaultdict(int)
        self._operation_times: dict[str, float] = defaultdict(float)
        self._operation_counts: dict[str, int] = defaultdict(int)
        self._prometheus_enabled = False
        self._prometheus_prefix = prometheus_prefix
        self._registry = registry

        if enable_prometheus:
            self._init_prometheus()

    @property
    def prometheus_enabled(self) -> bool:
        """Whether Prometheus metrics are enabled."""
        return self._prometheus_enabled

    @property
    def registry(self) -> Any:
        """Prometheus registry holding these metrics, or None when disabled."""
        return self._registry if self._prometheus_enabled else None

    def _init_prometheus(self) -> None:
        """Initialize Prometheus metrics if available."""
        try:
            from prometheus_client import CollectorRegistry, Counter, Histogram

            prefix = self._prometheus_prefix
            if self._registry is None:
                self._registry = CollectorRegistry()
            registry = self._registry

            self._prom_sightings = Counter(
                f"{prefix}_sightings_total",
                "Sightings processed",
                registry=registry,
            )
            self._prom_actions = Counter(
                f"{prefix}_actions_total",
                "Reconciliation decisions",
                ["action"],
                registry=registry,
            )
            self._prom_failures = Counter(
                f"{prefix}_persistence_failures_total",
                "Failed store writes",
                ["operation"],
                registry=registry,
            )
            self._prom_store_duration = Histogram(
                f"{prefix}_store_duration_seconds",
                "Time spent in store writes",
                ["operation"],
                buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
                registry=registry,
            )

            self._prometheus_enabled = True
            logger.info("Prometheus metrics enabled")

        except ImportError:
            logger.warning(
                "prometheus_client not installed. "
                "Install with: pip install beaconwatch[metrics]"
            )

    def record_sighting(self) -> None:
        """Count one processed sighting."""
        with self._lock:
            self._sightings += 1
        if self._prometheus_enabled:
            self._prom_sightings.inc()

    def record_action(self, action: str) -> None:
        """Count an engine decision ("insert", "update" or "absorb")."""
        with self._lock:
            self._actions[action] += 1
        if self._prometheus_enabled:
            self._prom_actions.labels(action=action).inc()

    def record_failure(self, operation: str) -> None:
        """Count a failed store write.

        Args:
            operation: "insert" or "update"
        """
        with self._lock:
            self._failures[operation] += 1
        if self._prometheus_enabled:
            self._prom_failures.labels(operation=operation).inc()

    @contextmanager
    def time_operation(self, operation: str) -> Generator[None, None, None]:
        """Context manager to time a store call.

        Example:
            >>> metrics = EngineMetrics()
            >>> with metrics.time_operation("update"):
            ...     pass
            >>> "update" in metrics.summary().operation_times
            True
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            with self._lock:
                self._operation_times[operation] += duration
                self._operation_counts[operation] += 1
            if self._prometheus_enabled:
                self._prom_store_duration.labels(operation=operation).observe(duration)

    def summary(self) -> MetricsSummary:
        """Get metrics summary."""
        with self._lock:
            return MetricsSummary(
                sightings=self._sightings,
                inserts=self._actions.get("insert", 0),
                updates=self._actions.get("update", 0),
                absorbed=self._actions.get("absorb", 0),
                persistence_failures=sum(self._failures.values()),
                failures_by_operation=dict(self._failures),
                operation_times=dict(self._operation_times),
                operation_counts=dict(self._operation_counts),
            )

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._sightings = 0
            self._actions.clear()
            self._failures.clear()
            self._operation_times.clear()
            self._operation_counts.clear()

    def to_dict(self) -> dict[str, Any]:
        """Export metrics as dictionary."""
        return self.summary().to_dict()


__all__ = [
    "EngineMetrics",
    "MetricsSummary",
]

"""
Prometheus Metrics Module for alias rollouts.

Exposes the progress of a rollout (candidate share, phase) and the
latency/outcome of every routing call.

Usage:
    from monitoring import MetricsRegistry

    registry = MetricsRegistry()

    with registry.timer("rollout_routing_call_seconds", operation="partial_split"):
        router.set_partial_split(...)

    registry.set_gauge("rollout_candidate_share", 0.3, function="orders", alias="live")
"""

import time
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from enum import Enum
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Enum as StateMetric,
    CollectorRegistry,
    start_http_server,
)


class MetricType(Enum):
    """Types of Prometheus metrics."""
    COUNTER = "counter"
    HISTOGRAM = "histogram"
    GAUGE = "gauge"
    STATE = "state"


@dataclass
class MetricDefinition:
    """Definition for a Prometheus metric."""
    name: str
    description: str
    metric_type: MetricType
    labels: List[str] = field(default_factory=list)
    buckets: Optional[List[float]] = None  # For histograms
    states: Optional[List[str]] = None  # For state metrics


# =============================================================================
# METRIC DEFINITIONS
# =============================================================================

ROLLOUT_PHASES = ["pending", "ramping", "promoting", "done", "failed", "cancelled"]

ROLLOUT_METRICS = [
    MetricDefinition(
        name="rollout_candidate_share",
        description="Fraction of alias traffic currently routed to the candidate version",
        metric_type=MetricType.GAUGE,
        labels=["function", "alias"]
    ),
    MetricDefinition(
        name="rollout_steps_total",
        description="Completed ramp steps",
        metric_type=MetricType.COUNTER,
        labels=["function", "alias"]
    ),
    MetricDefinition(
        name="rollout_phase",
        description="Current phase of the rollout",
        metric_type=MetricType.STATE,
        labels=["function", "alias"],
        states=ROLLOUT_PHASES
    ),
]

ROUTING_METRICS = [
    MetricDefinition(
        name="rollout_routing_calls_total",
        description="Routing service calls by operation and outcome",
        metric_type=MetricType.COUNTER,
        labels=["operation", "status"]
    ),
    MetricDefinition(
        name="rollout_routing_call_seconds",
        description="Routing service call latency in seconds",
        metric_type=MetricType.HISTOGRAM,
        labels=["operation"],
        buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
    ),
]


class MetricsRegistry:
    """
    Registry for the rollout metrics.

    Each instance owns its own CollectorRegistry so that several
    controllers (and tests) never collide on metric names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self._registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        for metric_def in ROLLOUT_METRICS + ROUTING_METRICS:
            self._create_metric(metric_def)

    @property
    def collector_registry(self) -> CollectorRegistry:
        return self._registry

    def _create_metric(self, definition: MetricDefinition):
        """Create a Prometheus metric from definition."""
        metric_class = {
            MetricType.COUNTER: Counter,
            MetricType.HISTOGRAM: Histogram,
            MetricType.GAUGE: Gauge,
            MetricType.STATE: StateMetric,
        }[definition.metric_type]

        kwargs = {
            'name': definition.name,
            'documentation': definition.description,
            'labelnames': definition.labels,
            'registry': self._registry,
        }

        if definition.buckets and definition.metric_type == MetricType.HISTOGRAM:
            kwargs['buckets'] = definition.buckets
        if definition.states and definition.metric_type == MetricType.STATE:
            kwargs['states'] = definition.states

        self._metrics[definition.name] = metric_class(**kwargs)

    def get(self, name: str) -> Any:
        """Get a metric by name."""
        if name not in self._metrics:
            raise KeyError(f"Metric '{name}' not found")
        return self._metrics[name]

    @contextmanager
    def timer(self, histogram_name: str, **labels):
        """
        Context manager for timing operations.

        Usage:
            with registry.timer("rollout_routing_call_seconds", operation="full_cutover"):
                router.set_full_cutover(...)
        """
        histogram = self.get(histogram_name)
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            histogram.labels(**labels).observe(duration)

    def count(self, counter_name: str, value: int = 1, **labels):
        """Increment a counter."""
        self.get(counter_name).labels(**labels).inc(value)

    def set_gauge(self, gauge_name: str, value: float, **labels):
        """Set a gauge value."""
        self.get(gauge_name).labels(**labels).set(value)

    def set_state(self, metric_name: str, state: str, **labels):
        """Move a state metric to the given state."""
        self.get(metric_name).labels(**labels).state(state)

    def sample(self, name: str, **labels) -> Optional[float]:
        """Read back a single sample value."""
        return self._registry.get_sample_value(name, labels)


def start_metrics_server(port: int = 9090, registry: Optional[MetricsRegistry] = None) -> MetricsRegistry:
    """
    Start a standalone HTTP server for Prometheus metrics.

    Args:
        port: Port to listen on (default: 9090)
        registry: MetricsRegistry instance (creates one if None)
    """
    if registry is None:
        registry = MetricsRegistry()

    start_http_server(port, registry=registry.collector_registry)
    return registry

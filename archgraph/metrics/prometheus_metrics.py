"""
Prometheus Metrics Module for ArchGraph
=======================================

Provides metrics instrumentation for monitoring execution sessions,
node evaluation and the controller's state machine.

Metrics are exposed via a /metrics endpoint for Prometheus scraping.

Usage:
    from archgraph.metrics import metrics

    # Increment counters
    metrics.node_executions.labels(node_kind="function", status="completed").inc()

    # Record histograms
    with time_block(metrics.node_execution_duration, {'node_kind': 'function'}):
        evaluate()

    # Set gauges
    metrics.active_sessions.set(1)
"""

import time
import logging
from typing import Optional, Any
from contextlib import contextmanager

from prometheus_client import (
    Counter, Gauge, Histogram, Info,
    REGISTRY, generate_latest, CONTENT_TYPE_LATEST
)

logger = logging.getLogger(__name__)


# Default histogram buckets for latency metrics (in seconds)
LATENCY_BUCKETS = (
    0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5,
    1.0, 2.5, 5.0, 10.0, float("inf")
)


class ArchGraphMetrics:
    """
    Central metrics registry for ArchGraph.

    Metrics are organized by category:
    - Session metrics
    - Node metrics
    - Sort metrics
    """

    def __init__(self, registry: Optional[Any] = None):
        """
        Initialize metrics.

        Args:
            registry: Optional custom CollectorRegistry; tests pass a fresh
                      one so that repeated construction does not collide
        """
        self._registry = registry or REGISTRY
        self._create_metrics()

    def _create_metrics(self):
        """Create all Prometheus metrics."""

        # =====================================================================
        # Application Info
        # =====================================================================
        self.app_info = Info(
            'archgraph',
            'ArchGraph execution engine information',
            registry=self._registry
        )
        self.app_info.info({'version': '1.0.0', 'component': 'execution_engine'})

        # =====================================================================
        # Session Metrics
        # =====================================================================
        self.sessions_started = Counter(
            'archgraph_sessions_started_total',
            'Total number of execution sessions started',
            ['definition_id'],
            registry=self._registry
        )

        self.state_transitions = Counter(
            'archgraph_state_transitions_total',
            'Execution controller state transitions',
            ['from_state', 'to_state'],
            registry=self._registry
        )

        self.active_sessions = Gauge(
            'archgraph_active_sessions',
            'Number of sessions that are neither idle nor finished',
            registry=self._registry
        )

        # =====================================================================
        # Node Metrics
        # =====================================================================
        self.node_executions = Counter(
            'archgraph_node_executions_total',
            'Total number of node evaluations',
            ['node_kind', 'status'],
            registry=self._registry
        )

        self.node_execution_duration = Histogram(
            'archgraph_node_execution_duration_seconds',
            'Node evaluation duration in seconds',
            ['node_kind'],
            buckets=LATENCY_BUCKETS,
            registry=self._registry
        )

        self.node_errors = Counter(
            'archgraph_node_errors_total',
            'Total number of node evaluation errors',
            ['node_kind', 'error_type'],
            registry=self._registry
        )

        # =====================================================================
        # Sort Metrics
        # =====================================================================
        self.sort_failures = Counter(
            'archgraph_sort_failures_total',
            'Topological sorts that found a cycle',
            registry=self._registry
        )

        logger.debug("ArchGraph metrics created")

    @property
    def registry(self):
        return self._registry

    def generate_latest(self) -> bytes:
        """Generate latest metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get content type for metrics response."""
        return CONTENT_TYPE_LATEST


# Singleton metrics instance
metrics = ArchGraphMetrics()


@contextmanager
def time_block(histogram_metric, labels: Optional[dict] = None):
    """
    Context manager to time a block of code.

    Usage:
        with time_block(metrics.node_execution_duration, {'node_kind': 'input'}):
            evaluate()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration = time.perf_counter() - start
        if labels:
            histogram_metric.labels(**labels).observe(duration)
        else:
            histogram_metric.observe(duration)

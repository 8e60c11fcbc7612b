"""
Metrics Module for ArchGraph
============================

Usage:
    from archgraph.metrics import metrics

    metrics.sessions_started.labels(definition_id="def-1").inc()
"""

from .prometheus_metrics import (
    metrics,
    ArchGraphMetrics,
    time_block,
)

__all__ = [
    'metrics',
    'ArchGraphMetrics',
    'time_block',
]

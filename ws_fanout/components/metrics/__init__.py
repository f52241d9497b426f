"""
Metrics components.
"""

from ws_fanout.components.metrics.collector import (
    MetricsCollector,
    generate_prometheus_metrics,
)

__all__ = [
    "MetricsCollector",
    "generate_prometheus_metrics",
]

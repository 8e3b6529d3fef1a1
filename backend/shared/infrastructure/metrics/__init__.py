"""
Metrics: in-process counters and gauges with Prometheus text exposition.
"""

from .collector import MetricsCollector, get_metrics
from .prometheus import PrometheusFormatter, generate_prometheus_metrics

__all__ = [
    "MetricsCollector",
    "get_metrics",
    "PrometheusFormatter",
    "generate_prometheus_metrics",
]

"""
Metrics components.
"""

from signal_gateway.components.metrics.collector import MetricsCollector
from signal_gateway.components.metrics.prometheus import (
    PrometheusFormatter,
    generate_prometheus_metrics,
    get_prometheus_formatter,
)

__all__ = [
    "MetricsCollector",
    "PrometheusFormatter",
    "generate_prometheus_metrics",
    "get_prometheus_formatter",
]

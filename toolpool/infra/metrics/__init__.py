"""Metrics collection module for Prometheus."""

from toolpool.infra.metrics.service import MetricsService, get_metrics

__all__ = [
    "MetricsService",
    "get_metrics",
]

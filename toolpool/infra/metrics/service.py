"""Metrics collection service using Prometheus.

This service tracks the tool reuse lifecycle:
- Invocation outcomes and latency per tool type
- Promotions into the shared pool
- Resolver decisions (own tool, shared tool, synthesis needed)
- Registrations, timeouts and execution-limit rejections
"""

import logging
import time
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class MetricsService:
    """Service for collecting and exposing Prometheus metrics.

    Usage:
        metrics = get_metrics()
        metrics.tool_outcomes.labels(tool_type="convert_temp", status="success").inc()
        with metrics.track_tool_invocation("convert_temp"):
            ...
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics service.

        Args:
            registry: Optional Prometheus registry (default: global registry)
        """
        self.registry = registry
        kwargs = {"registry": registry} if registry is not None else {}

        # Accounting
        self.tool_outcomes = Counter(
            "tool_outcomes_total",
            "Recorded tool invocation outcomes",
            ["tool_type", "status"],
            **kwargs
        )

        self.tool_promotions = Counter(
            "tool_promotions_total",
            "Tools promoted into the shared pool",
            ["tool_type"],
            **kwargs
        )

        self.tool_registrations = Counter(
            "tool_registrations_total",
            "Synthesized tools registered",
            ["tool_type"],
            **kwargs
        )

        # Resolution
        self.tool_resolutions = Counter(
            "tool_resolutions_total",
            "Resolver decisions by source",
            ["source"],
            **kwargs
        )

        # Invocation
        self.tool_invocation_time = Histogram(
            "tool_invocation_seconds",
            "Tool invocation time in seconds",
            ["tool_type"],
            buckets=[0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
            **kwargs
        )

        self.tool_timeouts = Counter(
            "tool_timeouts_total",
            "Tool invocations abandoned after their timeout",
            ["tool_type"],
            **kwargs
        )

        self.tool_limit_rejections = Counter(
            "tool_limit_rejections_total",
            "Tool invocations rejected by the execution limit",
            ["tool_type"],
            **kwargs
        )

        logger.info("MetricsService initialized with Prometheus metrics")

    def track_tool_invocation(self, tool_type: str):
        """Context manager timing a tool invocation.

        Usage:
            with metrics.track_tool_invocation("convert_temp"):
                # Invoke tool body
                pass
        """
        return _InvocationTimer(self.tool_invocation_time.labels(tool_type=tool_type))

    def export_metrics(self) -> bytes:
        """Export metrics in Prometheus format.

        Returns:
            Metrics in Prometheus text format
        """
        if self.registry is None:
            return generate_latest()
        return generate_latest(self.registry)


class _InvocationTimer:
    """Context manager observing elapsed time, whatever the exit path."""

    def __init__(self, timer):
        self.timer = timer
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.observe(time.time() - self.start_time)
        return False  # Don't suppress exceptions


# Global metrics instance
_metrics_instance: Optional[MetricsService] = None


def get_metrics() -> MetricsService:
    """Get global metrics service instance.

    Returns:
        Singleton MetricsService bound to the default Prometheus registry
    """
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = MetricsService()
    return _metrics_instance

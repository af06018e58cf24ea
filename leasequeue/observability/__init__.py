"""
Observability module.
Contains logging, metrics, and tracing setup.
"""

from leasequeue.observability.logging import get_logger, log_context, setup_logging
from leasequeue.observability.metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
)
from leasequeue.observability.tracing import get_tracer, setup_tracing, start_span

__all__ = [
    "setup_logging",
    "get_logger",
    "log_context",
    "setup_metrics",
    "get_metrics",
    "MetricsCollector",
    "setup_tracing",
    "get_tracer",
    "start_span",
]

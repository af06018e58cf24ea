"""
Prometheus metrics collection.
"""

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from leasequeue.constants import (
    METRIC_CLAIM_LATENCY,
    METRIC_CLAIM_RACES_LOST,
    METRIC_DELETE_MISSES,
    METRIC_MESSAGES_CLAIMED,
    METRIC_MESSAGES_DELETED,
    METRIC_MESSAGES_SENT,
    METRIC_QUEUE_DEPTH,
    METRIC_STORE_ERRORS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the lease store.

    Collects metrics for:
    - Messages sent, claimed and acknowledged
    - Claims lost to a concurrent consumer
    - Acknowledgements whose token matched nothing
    - Store failures
    - Claim latency and queue depth
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.messages_sent = Counter(
            METRIC_MESSAGES_SENT,
            "Total number of messages sent",
            ["queue"],
            registry=self._registry,
        )

        self.messages_claimed = Counter(
            METRIC_MESSAGES_CLAIMED,
            "Total number of messages leased by a claim",
            ["queue"],
            registry=self._registry,
        )

        # Rows selected as claimable whose conditional update matched nothing
        self.claim_races_lost = Counter(
            METRIC_CLAIM_RACES_LOST,
            "Total number of claim attempts lost to another consumer",
            ["queue"],
            registry=self._registry,
        )

        self.messages_deleted = Counter(
            METRIC_MESSAGES_DELETED,
            "Total number of messages acknowledged and deleted",
            registry=self._registry,
        )

        self.delete_misses = Counter(
            METRIC_DELETE_MISSES,
            "Total number of deletes whose lease token matched no message",
            registry=self._registry,
        )

        self.store_errors = Counter(
            METRIC_STORE_ERRORS,
            "Total number of failed units of work",
            ["operation"],
            registry=self._registry,
        )

        self.claim_latency = Histogram(
            METRIC_CLAIM_LATENCY,
            "Claim unit-of-work latency in seconds",
            ["queue"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
            registry=self._registry,
        )

        self.queue_depth = Gauge(
            METRIC_QUEUE_DEPTH,
            "Number of messages in the queue, leased or not",
            ["queue"],
            registry=self._registry,
        )

    def record_sent(self, queue: str) -> None:
        """Record a message send."""
        self.messages_sent.labels(queue=queue).inc()

    def record_claim(
        self,
        queue: str,
        claimed: int,
        lost: int,
        duration_seconds: float,
    ) -> None:
        """Record the outcome of one claim call."""
        if claimed:
            self.messages_claimed.labels(queue=queue).inc(claimed)
        if lost:
            self.claim_races_lost.labels(queue=queue).inc(lost)
        self.claim_latency.labels(queue=queue).observe(duration_seconds)

    def record_delete(self, deleted: bool) -> None:
        """Record an acknowledgement."""
        if deleted:
            self.messages_deleted.inc()
        else:
            self.delete_misses.inc()

    def record_store_error(self, operation: str) -> None:
        """Record a rolled-back unit of work."""
        self.store_errors.labels(operation=operation).inc()

    def update_queue_depth(self, queue: str, depth: int) -> None:
        """Update queue depth for a queue."""
        self.queue_depth.labels(queue=queue).set(depth)

    @property
    def registry(self) -> CollectorRegistry:
        """Registry holding these metrics, for the host application to expose."""
        return self._registry


def setup_metrics(registry: CollectorRegistry | None = None) -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Args:
        registry: Optional custom registry, only used on first setup.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector(registry)
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics

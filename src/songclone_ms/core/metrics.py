"""
Prometheus Metrics for the Song Clone Service.

Every request served by the HTTP layer, every voice-clone outcome and
every tier attempt is counted here. Poll loops additionally record how
long they waited on the remote provider.

Metrics Exposed:
    songclone_requests_total        - Counter of requests by operation and status
    songclone_request_duration_seconds - Histogram of request latency
    songclone_clone_results_total   - Counter of clone outcomes by method
    songclone_tier_attempts_total   - Counter of tier attempts by tier and outcome
    songclone_poll_seconds          - Histogram of provider wait time by job kind

Usage:
    from songclone_ms.core.metrics import metrics

    metrics.record_request("clone", "success", duration=41.2)
    metrics.record_clone_result("zero-shot")
    metrics.record_tier_attempt("trained", "failure")
    metrics.observe_poll("song", 63.0)

    content, content_type = metrics.get_metrics_response()

Prometheus Scrape Config Example:
    scrape_configs:
      - job_name: 'songclone-ms'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class SongCloneMetrics:
    """
    Metrics collection using the Prometheus client.

    A private CollectorRegistry keeps these series apart from anything
    else registered in the same process, so tests can build fresh
    instances without "Duplicated timeseries" errors.

    Example:
        >>> m = SongCloneMetrics()
        >>> m.record_clone_result("preset")
        >>> b"songclone_clone_results_total" in m.get_metrics_response()[0]
        True
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "songclone_requests_total",
            "Total API requests",
            ["operation", "status"],
            registry=self._registry,
        )

        # Provider round-trips dominate; buckets reach into minutes.
        self._request_duration = Histogram(
            "songclone_request_duration_seconds",
            "API request duration in seconds",
            ["operation"],
            buckets=(0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0),
            registry=self._registry,
        )

        self._clone_results = Counter(
            "songclone_clone_results_total",
            "Voice clone results by method",
            ["method"],
            registry=self._registry,
        )

        self._tier_attempts = Counter(
            "songclone_tier_attempts_total",
            "Voice clone tier attempts",
            ["tier", "outcome"],
            registry=self._registry,
        )

        self._poll_seconds = Histogram(
            "songclone_poll_seconds",
            "Time spent waiting on a remote job",
            ["kind"],
            buckets=(1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 240.0),
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, operation: str, status: str, duration: float = 0.0) -> None:
        """
        Record a completed API request.

        Args:
            operation: Operation name ("clone", "train", "song", ...)
            status: "success" or an error code
            duration: Request duration in seconds
        """
        self._requests_total.labels(operation=operation, status=status).inc()
        self._request_duration.labels(operation=operation).observe(duration)

    def record_clone_result(self, method: str) -> None:
        """Count a finished voice clone by its method tag."""
        self._clone_results.labels(method=method).inc()

    def record_tier_attempt(self, tier: str, outcome: str) -> None:
        """Count a tier attempt ("success", "failure" or "skipped")."""
        self._tier_attempts.labels(tier=tier, outcome=outcome).inc()

    def observe_poll(self, kind: str, seconds: float) -> None:
        self._poll_seconds.labels(kind=kind).observe(seconds)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global singleton metrics instance
metrics = SongCloneMetrics()

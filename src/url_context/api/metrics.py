"""Prometheus metrics for the URL context service.

All metrics are module-level singletons registered on the default
``REGISTRY``; import them from here rather than re-declaring them, since
registering the same name twice raises.

Metrics defined here:

  url_fetch_total{outcome}
      Counter: calls to ``ContentFetcher.fetch`` by outcome
      (success, cache_hit, validation_error, fetch_error).

  url_validation_rejections_total{reason}
      Counter: URLs refused before any network access, by
      ``ValidationReason`` value.

  url_fetch_duration_seconds
      Histogram: wall-clock duration of network fetches, retries included.

  batch_urls_total{status}
      Counter: URLs processed by the batch coordinator (success, failure).

  http_requests_total{method, path, status}
      Counter: requests served by the FastAPI application.

  http_request_duration_seconds{method, path}
      Histogram: request latency in seconds.

Usage::

    from url_context.api.metrics import url_fetch_total
    url_fetch_total.labels(outcome="success").inc()
"""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest
from prometheus_client.registry import CollectorRegistry

# ---------------------------------------------------------------------------
# Pipeline metrics (scraper/http_fetcher.py, scraper/batch.py)
# ---------------------------------------------------------------------------

url_fetch_total: Counter = Counter(
    "url_fetch_total",
    "URL fetches by outcome.",
    labelnames=["outcome"],
)

url_validation_rejections_total: Counter = Counter(
    "url_validation_rejections_total",
    "URLs rejected by security screening, by reason.",
    labelnames=["reason"],
)
"""Labels:
  reason: invalid_format, blocked_domain or suspicious_pattern.  Redirect
  targets that fail screening are counted too.
"""

url_fetch_duration_seconds: Histogram = Histogram(
    "url_fetch_duration_seconds",
    "Duration of network fetches in seconds, retries included.",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

batch_urls_total: Counter = Counter(
    "batch_urls_total",
    "URLs processed by the batch coordinator by status.",
    labelnames=["status"],
)

# ---------------------------------------------------------------------------
# Request metrics (api/main.py middleware)
# ---------------------------------------------------------------------------

http_requests_total: Counter = Counter(
    "http_requests_total",
    "Requests served by the URL context API.",
    labelnames=["method", "path", "status"],
)
"""``path`` is the matched route template, so fetched URLs never become labels."""

http_request_duration_seconds: Histogram = Histogram(
    "http_request_duration_seconds",
    "URL context API request latency in seconds.",
    labelnames=["method", "path"],
    # Batch requests run up to four inter-batch pauses plus retries.
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)


def get_metrics_response(registry: CollectorRegistry = REGISTRY) -> tuple[bytes, str]:
    """Render ``registry`` in the Prometheus text format.

    Returns:
        ``(body, content_type)`` for a FastAPI ``Response``.
    """
    return generate_latest(registry), CONTENT_TYPE_LATEST

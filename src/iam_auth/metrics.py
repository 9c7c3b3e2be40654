"""
Prometheus metrics for IAM token management.

Provides instrumentation for:
- Token exchange outcomes against the IAM endpoint
- Cache effectiveness of get_token() calls
- Exchange latency
"""

from prometheus_client import Counter, Histogram

# Token exchange metrics
token_exchanges_total = Counter(
    "iam_token_exchanges_total",
    "Total number of token exchanges against the IAM token endpoint",
    ["status"],  # status: success, http_error, transport_error, invalid_response
)

token_exchange_duration_seconds = Histogram(
    "iam_token_exchange_duration_seconds",
    "Time spent on a single token exchange request",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# get_token() outcomes
token_requests_total = Counter(
    "iam_token_requests_total",
    "Total number of get_token() calls by how they were served",
    ["result"],  # result: cached, waited, refreshed, failed
)


def record_exchange(status: str, duration_seconds: float) -> None:
    """
    Record a completed token exchange attempt.

    Args:
        status: Outcome label (success, http_error, transport_error, invalid_response)
        duration_seconds: Wall time of the request
    """
    token_exchanges_total.labels(status=status).inc()
    token_exchange_duration_seconds.observe(duration_seconds)


def record_token_request(result: str) -> None:
    """
    Record how a get_token() call was served.

    Args:
        result: One of cached, waited, refreshed, failed
    """
    token_requests_total.labels(result=result).inc()

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

FILE_DELIVERIES = Counter(
    "file_deliveries_total",
    "File delivery outcomes",
    ["outcome"],
)
MODERATION_CALLS = Counter(
    "moderation_calls_total",
    "Content moderation provider calls",
    ["result"],
)


def observe_delivery(outcome: str) -> None:
    FILE_DELIVERIES.labels(outcome=outcome).inc()


def observe_moderation(result: str) -> None:
    MODERATION_CALLS.labels(result=result).inc()

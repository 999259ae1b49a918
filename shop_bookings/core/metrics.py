from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
)

BOOKING_TRANSITIONS = Counter(
    "booking_transitions_total",
    "Booking state machine transitions by action and outcome",
    ["action", "outcome"],
)

NOTIFICATIONS_DISPATCHED = Counter(
    "booking_notifications_total",
    "Booking notifications handed to the dispatcher",
    ["type", "outcome"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST

"""
Prometheus metrics for the chat relay.

Metrics are created through get-or-create helpers so that re-importing the
module (e.g. uvicorn --reload) does not raise duplicate registration errors.
"""

from prometheus_client import REGISTRY, Counter, Gauge, Histogram


def _get_or_create_counter(
    name: str, doc: str, labels: list[str] | None = None
) -> Counter:
    """
    Get existing counter or create new one.

    Args:
        name: Metric name.
        doc: Metric documentation.
        labels: Optional list of label names.

    Returns:
        Counter instance.
    """
    try:
        return Counter(name, doc, labels or [])
    except ValueError:
        # Metric already exists, retrieve it from registry
        return REGISTRY._names_to_collectors[name]


def _get_or_create_gauge(
    name: str, doc: str, labels: list[str] | None = None
) -> Gauge:
    """Get existing gauge or create new one."""
    try:
        return Gauge(name, doc, labels or [])
    except ValueError:
        return REGISTRY._names_to_collectors[name]


def _get_or_create_histogram(
    name: str,
    doc: str,
    labels: list[str] | None = None,
    buckets: tuple[float, ...] | None = None,
) -> Histogram:
    """Get existing histogram or create new one."""
    try:
        if buckets:
            return Histogram(name, doc, labels or [], buckets=buckets)
        return Histogram(name, doc, labels or [])
    except ValueError:
        return REGISTRY._names_to_collectors[name]


# WebSocket Connection Metrics
ws_connections_active = _get_or_create_gauge(
    "ws_connections_active", "Number of active WebSocket connections"
)

ws_connections_total = _get_or_create_counter(
    "ws_connections_total", "Total WebSocket connections"
)

# WebSocket Message Metrics
ws_messages_received_total = _get_or_create_counter(
    "ws_messages_received_total",
    "Total WebSocket frames received",
    ["type"],
)

ws_messages_dropped_total = _get_or_create_counter(
    "ws_messages_dropped_total",
    "Total WebSocket frames dropped without routing",
    ["reason"],  # malformed, unknown_type, unauthenticated, already_logged_in
)

ws_messages_sent_total = _get_or_create_counter(
    "ws_messages_sent_total", "Total WebSocket frames sent"
)

ws_send_failures_total = _get_or_create_counter(
    "ws_send_failures_total",
    "Total WebSocket sends that failed on a closed or closing connection",
)

ws_message_processing_duration_seconds = _get_or_create_histogram(
    "ws_message_processing_duration_seconds",
    "WebSocket frame routing duration in seconds",
    ["type"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

# Chat Metrics
chat_logins_total = _get_or_create_counter(
    "chat_logins_total",
    "Total login attempts",
    ["status"],  # accepted, name_taken
)

chat_private_messages_total = _get_or_create_counter(
    "chat_private_messages_total",
    "Total private messages routed",
    ["status"],  # delivered, unavailable
)

chat_users_online = _get_or_create_gauge(
    "chat_users_online", "Number of users currently logged in"
)

app_info = _get_or_create_gauge(
    "app_info",
    "Application information",
    ["version", "python_version", "environment"],
)

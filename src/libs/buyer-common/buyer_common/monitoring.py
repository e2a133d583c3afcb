# src/libs/buyer-common/buyer_common/monitoring.py
import logging
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# Kafka metrics
# --------------------------------------------------------------------------------------
KAFKA_MESSAGES_PUBLISHED_TOTAL = Counter(
    "kafka_messages_published_total",
    "Number of messages successfully published to Kafka",
    labelnames=("topic",),
)

KAFKA_PUBLISH_ERRORS_TOTAL = Counter(
    "kafka_publish_errors_total",
    "Number of Kafka publish errors",
    labelnames=("topic", "error"),
)

KAFKA_PUBLISH_LATENCY_SECONDS = Histogram(
    "kafka_publish_latency_seconds",
    "Kafka publish latency in seconds by topic",
    labelnames=("topic",),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

def observe_kafka_published(topic: str, count: int = 1) -> None:
    KAFKA_MESSAGES_PUBLISHED_TOTAL.labels(topic).inc(count)

def observe_kafka_publish_error(topic: str, error: str, count: int = 1) -> None:
    KAFKA_PUBLISH_ERRORS_TOTAL.labels(topic, error).inc(count)

def kafka_publish_timer(topic: str):
    """Context manager that observes Kafka publish latency for a topic."""
    return KAFKA_PUBLISH_LATENCY_SECONDS.labels(topic).time()

# --------------------------------------------------------------------------------------
# Gateway metrics
# --------------------------------------------------------------------------------------
ACTION_REQUESTS_TOTAL = Counter(
    "buyer_app_action_requests_total",
    "Buyer app action requests by action and acknowledgement outcome.",
    labelnames=("action", "outcome"),
)

VALIDATION_FAILURES_TOTAL = Counter(
    "buyer_app_validation_failures_total",
    "Number of action payloads rejected by schema validation.",
    labelnames=("action", "error_code"),
)

def observe_action_outcome(action: str, outcome: str) -> None:
    ACTION_REQUESTS_TOTAL.labels(action, outcome).inc()

def observe_validation_failure(action: str, error_code: str) -> None:
    VALIDATION_FAILURES_TOTAL.labels(action, error_code).inc()

# --------------------------------------------------------------------------------------
# HTTP metrics
# --------------------------------------------------------------------------------------
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "HTTP requests total",
    labelnames=("service", "method", "path", "status"),
)

HTTP_REQUEST_LATENCY_SECONDS = Histogram(
    "http_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("service", "method", "path"),
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

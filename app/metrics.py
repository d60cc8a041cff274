from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "recordhub_http_requests_total",
    "HTTP requests",
    ["method", "route", "status"],
)
REQUEST_LATENCY = Histogram(
    "recordhub_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "route"],
)
RECORD_MUTATIONS = Counter(
    "recordhub_record_mutations_total",
    "Record create/update/delete operations",
    ["module", "action"],
)
EVENTS_PUBLISHED = Counter(
    "recordhub_events_published_total",
    "Record events handed to the notification bridge",
    ["event_type"],
)
WEBHOOK_DELIVERIES = Counter(
    "recordhub_webhook_deliveries_total",
    "Webhook delivery attempts",
    ["status"],
)

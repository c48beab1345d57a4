"""Prometheus metrics for ZenKeep.

All metric objects are defined here so they can be imported from any module.
"""

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# Collection metrics
# ---------------------------------------------------------------------------

ITEM_MUTATIONS = Counter(
    "zenkeep_item_mutations_total",
    "Total number of completed collection mutations",
    ["kind", "operation"],  # create, update, delete, favorite
)

VALIDATION_ERRORS = Counter(
    "zenkeep_validation_errors_total",
    "Drafts rejected by the required-field check",
    ["kind", "field"],
)

STORED_ITEMS = Gauge(
    "zenkeep_stored_items",
    "Number of items currently held per collection",
    ["kind"],
)

STORAGE_RECOVERIES = Counter(
    "zenkeep_storage_recoveries_total",
    "Collections reset to empty because the stored blob was unreadable",
    ["kind"],
)

# ---------------------------------------------------------------------------
# AI suggestion metrics
# ---------------------------------------------------------------------------

AI_SUGGESTIONS = Counter(
    "zenkeep_ai_suggestions_total",
    "AI suggestion requests by outcome",
    ["operation", "outcome"],  # success, failure, disabled
)

AI_DURATION = Histogram(
    "zenkeep_ai_duration_seconds",
    "Duration of AI suggestion calls in seconds",
    ["operation"],
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS = Counter(
    "zenkeep_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_DURATION = Histogram(
    "zenkeep_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0, 30.0, 60.0),
)

"""Prometheus metrics for translation sync operations."""

from prometheus_client import Counter, Gauge

sync_total = Counter(
    "translation_sync_total",
    "Translation sync operations by outcome",
    ["sync_type", "outcome"],  # taxonomy, posts / success, failure
)

sync_failures_total = Counter(
    "translation_sync_failures_total",
    "Failed translation sync operations by error kind",
    ["sync_type", "kind"],  # validation, not_found, conflict, delegate, unexpected
)

translation_groups_created_total = Counter(
    "translation_groups_created_total",
    "Translation groups created",
    ["kind"],  # term, post
)

sync_last_success_timestamp = Gauge(
    "translation_sync_last_success_timestamp",
    "Unix timestamp of the last successful sync by type",
    ["sync_type"],
)

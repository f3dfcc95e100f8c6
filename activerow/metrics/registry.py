from __future__ import annotations

from prometheus_client import Counter, Histogram

RECORD_WRITE_TOTAL = Counter(
    "activerow_record_write_total",
    "Record insert/update/delete operations by outcome",
    ["table", "op_type", "status"],
)

RECORD_WRITE_LATENCY_SECONDS = Histogram(
    "activerow_record_write_latency_seconds",
    "Latency of record insert/update/delete operations",
    ["table", "op_type"],
)

STALE_OBJECT_TOTAL = Counter(
    "activerow_stale_object_total",
    "Optimistic-lock conflicts detected on update/delete",
    ["table", "op_type"],
)

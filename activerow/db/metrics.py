from __future__ import annotations

from ..metrics.registry import (
    RECORD_WRITE_LATENCY_SECONDS,
    RECORD_WRITE_TOTAL,
    STALE_OBJECT_TOTAL,
)


def observe_record_write(table: str, op_type: str, status: str, latency_s: float) -> None:
    """
    Record the outcome and latency of a single record write.

    Args:
        table: Table the record is bound to
        op_type: "insert", "update" or "delete"
        status: "success", "declined", "stale" or "error"
        latency_s: Elapsed wall time in seconds
    """
    RECORD_WRITE_TOTAL.labels(table=table, op_type=op_type, status=status).inc()
    RECORD_WRITE_LATENCY_SECONDS.labels(table=table, op_type=op_type).observe(latency_s)


def observe_stale_object(table: str, op_type: str) -> None:
    STALE_OBJECT_TOTAL.labels(table=table, op_type=op_type).inc()

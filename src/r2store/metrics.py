"""Prometheus metrics for r2store.

All metrics use the ``r2store_`` prefix. Collection is opt-in: until
``init_metrics()`` is called the module-level references stay ``None``,
nothing is registered in the global registry, and the ``record_*`` helpers
do nothing.
"""

from __future__ import annotations

from prometheus_client import Counter

_initialized: bool = False

# Transport operations by name and outcome (labels: operation, status)
operations_total: Counter | None = None

# Bytes acknowledged by multipart uploads
upload_bytes_total: Counter | None = None


def init_metrics() -> None:
    """Create and register the r2store metrics. Safe to call repeatedly."""
    global _initialized, operations_total, upload_bytes_total

    if _initialized:
        return

    operations_total = Counter(
        "r2store_operations_total",
        "Total S3 operations issued by r2store, by operation and outcome",
        ["operation", "status"],
    )
    upload_bytes_total = Counter(
        "r2store_upload_bytes",
        "Total bytes transferred by multipart uploads",
    )

    _initialized = True


def record_operation(operation: str, status: str) -> None:
    """Count one transport call. ``status`` is 'success' or 'error'."""
    if operations_total is not None:
        operations_total.labels(operation=operation, status=status).inc()


def record_upload_bytes(count: int) -> None:
    """Add ``count`` transferred bytes to the upload counter."""
    if upload_bytes_total is not None and count > 0:
        upload_bytes_total.inc(count)

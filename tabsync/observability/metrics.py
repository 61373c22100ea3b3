"""Prometheus metrics for tabsync.

This module provides metrics collection for monitoring:
- Sync passes (count by outcome and duration)
- Operations applied to tabs and bookmarks
- Tabs created by load/restore

Usage:
    from tabsync.observability.metrics import record_sync_pass, record_operation

    record_sync_pass(status="success", latency_seconds=0.42)
    record_operation(target="bookmarks", op_type="add_item", status="applied")
"""

from __future__ import annotations

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Custom registry so independent engines and tests never collide with the default one
REGISTRY = CollectorRegistry()

SYNC_PASSES = Counter(
    "tabsync_sync_passes_total",
    "Total number of workspace sync passes",
    ["status"],
    registry=REGISTRY,
)

SYNC_DURATION = Histogram(
    "tabsync_sync_duration_seconds",
    "Workspace sync pass duration in seconds",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=REGISTRY,
)

OPERATIONS_APPLIED = Counter(
    "tabsync_operations_total",
    "Reconciliation operations handled by the appliers",
    ["target", "type", "status"],
    registry=REGISTRY,
)

TABS_CREATED = Counter(
    "tabsync_tabs_created_total",
    "Tabs created while loading or restoring workspaces",
    ["mode"],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics in text format."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST


def record_sync_pass(status: str, latency_seconds: float | None = None) -> None:
    """Record a sync pass.

    Args:
        status: Pass outcome (success, noop, skipped, error)
        latency_seconds: Optional pass duration in seconds
    """
    SYNC_PASSES.labels(status=status).inc()

    if latency_seconds is not None:
        SYNC_DURATION.observe(latency_seconds)


def record_operation(target: str, op_type: str, status: str) -> None:
    """Record one applied, skipped or failed operation.

    Args:
        target: Applier destination (tabs, bookmarks)
        op_type: Operation type (add_item, delete_group, ...)
        status: applied, skipped or failed
    """
    OPERATIONS_APPLIED.labels(target=target, type=op_type, status=status).inc()


def record_tabs_created(mode: str, count: int) -> None:
    """Record tabs created by a workspace load (mode: load, restore)."""
    if count > 0:
        TABS_CREATED.labels(mode=mode).inc(count)

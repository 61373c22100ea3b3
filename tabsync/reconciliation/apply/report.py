"""Outcome of one apply pass."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from tabsync.observability.metrics import record_operation
from tabsync.reconciliation.models import operation_name

if TYPE_CHECKING:
    from tabsync.reconciliation.models import Operation


class ApplyReport(BaseModel):
    """Counts of applied, skipped and failed operations for one destination."""

    target: str  # 'tabs' or 'bookmarks'
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return self.applied + self.skipped + self.failed

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def record_applied(self, operation: Operation) -> None:
        self.applied += 1
        record_operation(self.target, operation_name(operation), "applied")

    def record_skipped(self, operation: Operation) -> None:
        self.skipped += 1
        record_operation(self.target, operation_name(operation), "skipped")

    def record_failed(self, operation: Operation, error: BaseException | str) -> None:
        self.failed += 1
        self.errors.append(f"{operation_name(operation)}: {error}")
        record_operation(self.target, operation_name(operation), "failed")

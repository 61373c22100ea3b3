"""Per-workspace sync bookkeeping and pass outcomes."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict

from tabsync.reconciliation.apply.report import ApplyReport


@dataclass
class WorkspaceSyncState:
    """Everything the orchestrator tracks for one workspace.

    Owned by a single ``SyncOrchestrator``; nothing else mutates it.
    """

    workspace_id: str
    is_syncing: bool = False
    pending: asyncio.TimerHandle | None = None
    window_id: int | None = None
    renamed_urls: set[str] = field(default_factory=set)
    passes: int = 0
    failures: int = 0
    dropped_requests: int = 0

    @property
    def is_debouncing(self) -> bool:
        return self.pending is not None and not self.pending.cancelled()


class SyncOutcome(BaseModel):
    """Result of one sync pass."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    workspace_id: str
    window_id: int | None = None
    status: str  # 'success', 'noop', 'skipped' or 'error'
    operations: int = 0
    report: ApplyReport | None = None
    error: str | None = None
    cleanup_failures: int = 0  # workspace children the clear step could not remove
    correlation_id: str | None = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status in {"success", "noop"}


class LoadResult(BaseModel):
    """Result of loading or restoring a workspace into a window."""

    workspace_id: str
    window_id: int | None = None
    mode: str  # 'load' or 'restore'
    tabs_created: int = 0
    tabs_failed: int = 0
    groups_created: int = 0
    tabs_removed: int = 0
    tabs_discarded: int = 0
    duration_seconds: float = 0.0

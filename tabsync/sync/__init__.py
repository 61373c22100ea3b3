"""Sync orchestration: debounced passes, loading guard, workspace loading."""

from tabsync.sync.loader import TabJob, WorkspaceLoader, plan_tab_jobs
from tabsync.sync.orchestrator import SyncOrchestrator
from tabsync.sync.state import LoadResult, SyncOutcome, WorkspaceSyncState

__all__ = [
    "LoadResult",
    "SyncOrchestrator",
    "SyncOutcome",
    "TabJob",
    "WorkspaceLoader",
    "WorkspaceSyncState",
    "plan_tab_jobs",
]

"""tabsync: keep browser windows and bookmark-folder workspaces in sync.

A window's tabs, tab groups and pinned tabs are mirrored into a bookmark
folder (a workspace) and can be loaded back into any window. The engine
normalizes both sides into one model, diffs them by URL and group key, and
replays the difference through a ``BrowserApi`` binding.
"""

from tabsync.bootstrap import Engine, create_engine
from tabsync.config import AppConfig, SyncConfig, load_config
from tabsync.core.logging_utils import configure_logging
from tabsync.infrastructure.messaging import EventBus
from tabsync.reconciliation import diff, diff_states, from_bookmark_tree, from_live_state
from tabsync.sync import SyncOrchestrator, WorkspaceLoader
from tabsync.workspaces import WindowWorkspaceLinks, WorkspacesService

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "Engine",
    "EventBus",
    "SyncConfig",
    "SyncOrchestrator",
    "WindowWorkspaceLinks",
    "WorkspaceLoader",
    "WorkspacesService",
    "__version__",
    "configure_logging",
    "create_engine",
    "diff",
    "diff_states",
    "from_bookmark_tree",
    "from_live_state",
    "load_config",
]

"""Workspace management and window links."""

from tabsync.workspaces.links import LINKS_STORAGE_KEY, WindowWorkspaceLinks
from tabsync.workspaces.service import Workspace, WorkspacesService

__all__ = [
    "LINKS_STORAGE_KEY",
    "WindowWorkspaceLinks",
    "Workspace",
    "WorkspacesService",
]

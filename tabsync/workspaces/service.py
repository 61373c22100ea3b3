"""Workspace management on top of the sync engine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel

from tabsync.adapters.browser.guard import guarded
from tabsync.core.async_utils import raise_if_cancelled
from tabsync.domain.exceptions import BookmarkNotFoundError, WorkspaceOperationError
from tabsync.reconciliation.metadata import encode_bookmark_title
from tabsync.reconciliation.tree import collect_bookmark_titles, find_bookmark_by_url, iter_nodes
from tabsync.sync.loader import WorkspaceLoader

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tabsync.adapters.browser.models import BookmarkNode
    from tabsync.adapters.browser.protocols import BrowserApi
    from tabsync.sync.orchestrator import SyncOrchestrator
    from tabsync.sync.state import LoadResult, SyncOutcome
    from tabsync.workspaces.links import WindowWorkspaceLinks

logger = logging.getLogger(__name__)

BOOKMARKS_BAR_TITLE = "Bookmarks bar"
BOOKMARKS_BAR_ID = "1"


class Workspace(BaseModel):
    """A workspace folder under the bookmarks bar."""

    id: str
    title: str
    bookmark_count: int = 0
    linked_window_id: int | None = None


class WorkspacesService:
    """Save, list, rename, delete, load and restore workspaces."""

    def __init__(
        self,
        browser: BrowserApi,
        orchestrator: SyncOrchestrator,
        links: WindowWorkspaceLinks,
    ) -> None:
        self._browser = browser
        self._orchestrator = orchestrator
        self._links = links
        self._loader = WorkspaceLoader(orchestrator)

    @property
    def loader(self) -> WorkspaceLoader:
        return self._loader

    async def get_bookmarks_bar(self) -> BookmarkNode:
        try:
            tree = await self._browser.bookmarks.get_tree()
        except Exception as exc:
            raise_if_cancelled(exc)
            raise WorkspaceOperationError("get_bookmarks_bar", str(exc)) from exc

        roots = tree[0].children if tree else None
        for node in roots or ():
            if node.title == BOOKMARKS_BAR_TITLE or node.id == BOOKMARKS_BAR_ID:
                return node
        raise WorkspaceOperationError("get_bookmarks_bar", "Bookmarks bar not found")

    async def list_workspaces(self) -> list[Workspace]:
        bar = await self.get_bookmarks_bar()
        children = await guarded(
            self._browser.bookmarks.get_children(bar.id),
            default=[],
            operation="bookmarks.get_children",
            node_id=bar.id,
        )
        linked = await guarded(
            self._links.get_map(), default={}, operation="links.get_map"
        )
        by_workspace = {workspace_id: window_id for window_id, workspace_id in linked.items()}

        workspaces: list[Workspace] = []
        for child in children:
            if child.url is not None:
                continue
            subtree = await guarded(
                self._browser.bookmarks.get_sub_tree(child.id),
                default=[],
                operation="bookmarks.get_sub_tree",
                level=logging.DEBUG,
                node_id=child.id,
            )
            count = sum(1 for node, _ in iter_nodes(subtree) if node.url)
            workspaces.append(
                Workspace(
                    id=child.id,
                    title=child.title,
                    bookmark_count=count,
                    linked_window_id=by_workspace.get(child.id),
                )
            )
        return workspaces

    async def save_workspace(self, name: str, window_id: int) -> tuple[BookmarkNode, SyncOutcome]:
        """Create a workspace folder and write the window's tabs into it."""
        bar = await self.get_bookmarks_bar()
        try:
            folder = await self._browser.bookmarks.create(parent_id=bar.id, title=name)
        except Exception as exc:
            raise_if_cancelled(exc)
            raise WorkspaceOperationError(
                "save_workspace", "Failed to create workspace folder"
            ) from exc

        outcome = await self._orchestrator.sync_now(window_id, folder.id)
        logger.info(
            "workspace_saved",
            extra={
                "workspace_id": folder.id,
                "workspace_name": name,
                "window_id": window_id,
                "status": outcome.status,
                "operations": outcome.operations,
            },
        )
        return folder, outcome

    async def delete_workspace(self, workspace_id: str) -> None:
        try:
            await self._browser.bookmarks.remove_tree(workspace_id)
        except Exception as exc:
            raise_if_cancelled(exc)
            raise WorkspaceOperationError(
                "delete_workspace", "Failed to delete workspace", workspace_id
            ) from exc

        window_id = await guarded(
            self._links.get_window_for_workspace(workspace_id),
            default=None,
            operation="links.get_window_for_workspace",
        )
        if window_id is not None:
            await guarded(
                self._links.unlink(window_id), default=None, operation="links.unlink"
            )
        self._orchestrator.forget(workspace_id)
        logger.info("workspace_deleted", extra={"workspace_id": workspace_id})

    async def rename_workspace(self, workspace_id: str, new_name: str) -> BookmarkNode:
        try:
            node = await self._browser.bookmarks.update(workspace_id, title=new_name)
        except Exception as exc:
            raise_if_cancelled(exc)
            raise WorkspaceOperationError(
                "rename_workspace", "Failed to rename workspace", workspace_id
            ) from exc
        logger.info(
            "workspace_renamed", extra={"workspace_id": workspace_id, "workspace_name": new_name}
        )
        return node

    async def rename_tab_bookmark(
        self, window_id: int, url: str, new_title: str, pinned: bool
    ) -> None:
        """Retitle the bookmark of a tab in the window's linked workspace.

        The URL is marked renamed so later syncs keep the new title.
        """
        workspace_id = await guarded(
            self._links.get_workspace_for_window(window_id),
            default=None,
            operation="links.get_workspace_for_window",
            window_id=window_id,
        )
        if workspace_id is None:
            raise BookmarkNotFoundError(url, None)

        subtree = await guarded(
            self._browser.bookmarks.get_sub_tree(workspace_id),
            default=[],
            operation="bookmarks.get_sub_tree",
            node_id=workspace_id,
        )
        bookmark = find_bookmark_by_url(
            subtree, url, max_depth=self._orchestrator.config.max_tree_depth
        )
        if bookmark is None:
            raise BookmarkNotFoundError(url, workspace_id)

        try:
            await self._browser.bookmarks.update(
                bookmark.id, title=encode_bookmark_title(new_title, pinned)
            )
        except Exception as exc:
            raise_if_cancelled(exc)
            raise BookmarkNotFoundError(url, workspace_id) from exc

        self._orchestrator.mark_renamed(workspace_id, url)
        logger.info(
            "tab_bookmark_renamed",
            extra={"workspace_id": workspace_id, "bookmark_id": bookmark.id, "url": url},
        )

    async def get_bookmark_titles(self, workspace_id: str) -> dict[str, str]:
        """URL -> clean bookmark title for one workspace; empty on failure."""
        subtree = await guarded(
            self._browser.bookmarks.get_sub_tree(workspace_id),
            default=[],
            operation="bookmarks.get_sub_tree",
            node_id=workspace_id,
        )
        return collect_bookmark_titles(
            subtree, max_depth=self._orchestrator.config.max_tree_depth
        )

    async def get_bookmark_titles_for(self, workspace_ids: Iterable[str]) -> dict[str, str]:
        """Merged URL -> title lookup; later workspaces win on conflicts."""
        titles: dict[str, str] = {}
        for workspace_id in workspace_ids:
            titles.update(await self.get_bookmark_titles(workspace_id))
        return titles

    async def load_workspace_in_window(
        self, workspace_id: str, window_id: int, keep_current_tabs: bool = False
    ) -> LoadResult:
        return await self._loader.load_into_window(
            workspace_id, window_id, keep_current_tabs=keep_current_tabs
        )

    async def restore_workspace(self, workspace_id: str) -> LoadResult:
        return await self._loader.restore(workspace_id)

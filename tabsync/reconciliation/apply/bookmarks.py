"""Replay operations against the bookmark subtree of one workspace."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, assert_never

from tabsync.adapters.browser.errors import BookmarkNodeNotFoundError
from tabsync.core.async_utils import raise_if_cancelled
from tabsync.domain.exceptions import WorkspaceNotFoundError
from tabsync.reconciliation.apply.ordering import sort_operations
from tabsync.reconciliation.apply.report import ApplyReport
from tabsync.reconciliation.metadata import (
    PINNED_FOLDER_NAME,
    decode_bookmark_title,
    decode_group_folder_title,
    encode_bookmark_title,
    encode_group_folder_title,
    is_pinned_folder,
)
from tabsync.reconciliation.models import (
    AddGroup,
    AddItem,
    DeleteGroup,
    DeleteItem,
    MoveItem,
    UpdateGroup,
    UpdateItem,
    operation_name,
)
from tabsync.reconciliation.tree import MAX_TREE_DEPTH, find_node_by_id, find_parent_of

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tabsync.adapters.browser.models import BookmarkNode
    from tabsync.adapters.browser.protocols import BrowserApi
    from tabsync.reconciliation.models import (
        GroupKey,
        ItemChanges,
        NormalizedGroup,
        Operation,
    )

logger = logging.getLogger(__name__)


class _BookmarksPass:
    """Caches for a single apply pass over one workspace folder."""

    def __init__(
        self,
        browser: BrowserApi,
        root: BookmarkNode,
        report: ApplyReport,
        max_depth: int,
    ) -> None:
        self.browser = browser
        self.root = root
        self.workspace_id = root.id
        self.report = report
        self.max_depth = max_depth
        self.pinned_folder_id: str | None = None
        self.group_folders: dict[GroupKey, str] = {}
        # AddGroup payloads of this batch, by source group id
        self.pending_groups: dict[str, NormalizedGroup] = {}

        for child in root.children or ():
            if child.url is None and not is_pinned_folder(child.title):
                meta = decode_group_folder_title(child.title)
                self.group_folders.setdefault((meta.title, meta.color), child.id)

    async def dedupe_pinned_folders(self) -> None:
        """Keep a single ``[pinned]`` folder at the workspace root.

        The first folder with bookmarks is kept (else the first one); bookmarks
        of other non-empty duplicates are moved into it before they are removed.
        """
        folders = [
            child
            for child in self.root.children or ()
            if child.url is None and is_pinned_folder(child.title)
        ]
        if not folders:
            return
        keeper = next((folder for folder in folders if folder.children), folders[0])
        self.pinned_folder_id = keeper.id
        duplicates = [folder for folder in folders if folder.id != keeper.id]
        if not duplicates:
            return

        for folder in duplicates:
            try:
                for bookmark in folder.children or ():
                    await self.browser.bookmarks.move(bookmark.id, parent_id=keeper.id)
                await self.browser.bookmarks.remove_tree(folder.id)
            except Exception as exc:
                raise_if_cancelled(exc)
                self.report.errors.append(f"dedupe_pinned_folders: {exc}")
                logger.warning(
                    "bookmarks_pinned_folder_cleanup_failed",
                    extra={
                        "folder_id": folder.id,
                        "workspace_id": self.workspace_id,
                        "error": str(exc),
                    },
                )
        logger.info(
            "bookmarks_pinned_folders_deduplicated",
            extra={
                "workspace_id": self.workspace_id,
                "kept_folder_id": keeper.id,
                "removed": len(duplicates),
            },
        )

    async def ensure_pinned_folder(self) -> str:
        if self.pinned_folder_id is None:
            folder = await self.browser.bookmarks.create(
                parent_id=self.workspace_id, title=PINNED_FOLDER_NAME, index=0
            )
            self.pinned_folder_id = folder.id
        return self.pinned_folder_id

    async def ensure_group_folder(self, group: NormalizedGroup) -> str:
        """Folder for ``group``'s key: existing, created earlier, or created now."""
        folder_id = self.group_folders.get(group.key)
        if folder_id is None:
            folder = await self.browser.bookmarks.create(
                parent_id=self.workspace_id,
                title=encode_group_folder_title(group.title, group.color, group.collapsed),
            )
            folder_id = folder.id
            self.group_folders[group.key] = folder_id
        return folder_id

    def group_for(
        self, group: NormalizedGroup | None, group_id: str | None
    ) -> NormalizedGroup | None:
        if group is not None:
            return group
        if group_id is not None:
            return self.pending_groups.get(group_id)
        return None

    async def parent_for(
        self, *, pinned: bool, group: NormalizedGroup | None, group_id: str | None
    ) -> str:
        if pinned:
            return await self.ensure_pinned_folder()
        resolved = self.group_for(group, group_id)
        if resolved is not None:
            return await self.ensure_group_folder(resolved)
        if group_id is not None:
            logger.warning(
                "bookmarks_group_unresolved",
                extra={"group_id": group_id, "workspace_id": self.workspace_id},
            )
        return self.workspace_id

    def find(self, node_id: str) -> BookmarkNode:
        node = find_node_by_id(self.root, node_id, max_depth=self.max_depth)
        if node is None:
            raise BookmarkNodeNotFoundError(node_id)
        return node

    def parent_id_of(self, node_id: str) -> str | None:
        parent = find_parent_of(self.root, node_id, max_depth=self.max_depth)
        return parent.id if parent is not None else None

    async def dispatch(self, operation: Operation) -> bool:
        """Run one operation; False means nothing applicable was done."""
        match operation:
            case AddItem(item=item, group=group):
                parent_id = await self.parent_for(
                    pinned=item.pinned, group=group, group_id=item.group_id
                )
                await self.browser.bookmarks.create(
                    parent_id=parent_id,
                    title=encode_bookmark_title(item.title, item.pinned, item.renamed),
                    url=item.url,
                )
                return True
            case DeleteItem(item_id=item_id):
                await self.browser.bookmarks.remove(item_id)
                return True
            case UpdateItem(item_id=item_id, changes=changes, group=group):
                return await self._update_item(item_id, changes, group)
            case MoveItem(item_id=item_id, new_index=new_index):
                parent_id = self.parent_id_of(item_id)
                if parent_id != self.workspace_id:
                    # Ranks are global across folders; inside a folder there is
                    # no matching slot, so the item keeps its place.
                    return False
                await self.browser.bookmarks.move(item_id, parent_id=parent_id, index=new_index)
                return True
            case AddGroup(group=group):
                # Folder creation waits for the first member so folders land in item order.
                self.pending_groups[group.id] = group
                return True
            case DeleteGroup(group_id=group_id):
                await self.browser.bookmarks.remove_tree(group_id)
                for key, folder_id in list(self.group_folders.items()):
                    if folder_id == group_id:
                        del self.group_folders[key]
                return True
            case UpdateGroup(group_id=group_id, changes=changes):
                if "collapsed" not in changes:
                    return False
                folder = self.find(group_id)
                meta = decode_group_folder_title(folder.title)
                # Title and color are the matching key and stay verbatim.
                await self.browser.bookmarks.update(
                    group_id,
                    title=encode_group_folder_title(meta.title, meta.color, changes["collapsed"]),
                )
                return True
            case _:
                assert_never(operation)

    async def _update_item(
        self, item_id: str, changes: ItemChanges, group: NormalizedGroup | None
    ) -> bool:
        node = self.find(item_id)
        current_parent = self.parent_id_of(item_id)
        in_pinned_folder = current_parent is not None and current_parent == self.pinned_folder_id
        meta = decode_bookmark_title(node.title)
        was_pinned = meta.pinned or in_pinned_folder

        new_title = changes.get("title", meta.title)
        new_pinned = changes.get("pinned", was_pinned)
        touched = False

        if new_title != meta.title or new_pinned != was_pinned:
            await self.browser.bookmarks.update(
                item_id, title=encode_bookmark_title(new_title, new_pinned)
            )
            touched = True

        destination: str | None = None
        if "pinned" in changes or "group_id" in changes:
            if new_pinned:
                destination = await self.ensure_pinned_folder()
            elif "group_id" in changes:
                destination = await self.parent_for(
                    pinned=False, group=group, group_id=changes["group_id"]
                )
            elif in_pinned_folder:
                destination = self.workspace_id

        if destination is not None and destination != current_parent:
            await self.browser.bookmarks.move(item_id, parent_id=destination)
            touched = True
        return touched

    async def create_remaining_groups(self) -> None:
        """Create folders for added groups that never received a member."""
        for source_id, group in self.pending_groups.items():
            if group.key in self.group_folders:
                continue
            try:
                await self.ensure_group_folder(group)
            except Exception as exc:
                raise_if_cancelled(exc)
                self.report.errors.append(f"add_group: {exc}")
                logger.warning(
                    "bookmarks_group_folder_create_failed",
                    extra={
                        "group_id": source_id,
                        "workspace_id": self.workspace_id,
                        "error": str(exc),
                    },
                )


class BookmarksApplier:
    """Apply operations to a workspace folder in the bookmark store.

    Operation ids are bookmark node ids inside that folder. The subtree is read
    once per pass; a missing workspace aborts the pass with
    ``WorkspaceNotFoundError``. Individual operation failures are logged,
    counted, and skipped.
    """

    target = "bookmarks"

    def __init__(self, browser: BrowserApi, *, max_depth: int = MAX_TREE_DEPTH) -> None:
        self._browser = browser
        self._max_depth = max_depth

    async def _load_root(self, workspace_id: str) -> BookmarkNode:
        try:
            subtree = await self._browser.bookmarks.get_sub_tree(workspace_id)
        except Exception as exc:
            raise_if_cancelled(exc)
            raise WorkspaceNotFoundError(workspace_id) from exc
        if not subtree:
            raise WorkspaceNotFoundError(workspace_id)
        return subtree[0]

    async def apply(self, workspace_id: str, operations: Iterable[Operation]) -> ApplyReport:
        started = time.perf_counter()
        report = ApplyReport(target=self.target)
        ordered = sort_operations(operations)

        root = await self._load_root(workspace_id)
        state = _BookmarksPass(self._browser, root, report, self._max_depth)
        await state.dedupe_pinned_folders()

        for operation in ordered:
            try:
                done = await state.dispatch(operation)
            except Exception as exc:
                raise_if_cancelled(exc)
                report.record_failed(operation, exc)
                logger.warning(
                    "bookmarks_apply_operation_failed",
                    extra={
                        "workspace_id": workspace_id,
                        "operation": operation_name(operation),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue
            if done:
                report.record_applied(operation)
            else:
                report.record_skipped(operation)

        await state.create_remaining_groups()

        report.duration_seconds = time.perf_counter() - started
        logger.info(
            "bookmarks_apply_completed",
            extra={
                "workspace_id": workspace_id,
                "operations": report.total,
                "applied": report.applied,
                "skipped": report.skipped,
                "failed": report.failed,
                "duration_ms": round(report.duration_seconds * 1000, 2),
            },
        )
        return report

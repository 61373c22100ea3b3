"""Open a workspace's bookmarks as tabs, in batches.

Tabs are created in chunks with a pause between chunks, grouped once every
tab exists, and discarded only after they reported a title or finished
loading (or a timeout passed). Discarding earlier leaves blank "Untitled" tabs.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tabsync.adapters.browser.events import TabUpdated
from tabsync.adapters.browser.guard import guarded
from tabsync.core.async_utils import raise_if_cancelled
from tabsync.domain.exceptions import (
    InvalidDataError,
    WorkspaceNotFoundError,
    WorkspaceOperationError,
)
from tabsync.observability.metrics import record_tabs_created
from tabsync.reconciliation.metadata import GroupMetadata, browser_group_title
from tabsync.reconciliation.normalizer import from_bookmark_tree
from tabsync.sync.state import LoadResult

if TYPE_CHECKING:
    from tabsync.adapters.browser.models import BookmarkNode, Tab
    from tabsync.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TabJob:
    """One tab to open for a bookmark."""

    url: str
    pinned: bool = False
    group: GroupMetadata | None = None
    title: str = ""


@dataclass(slots=True)
class _CreatedTab:
    job: TabJob
    tab_id: int


def plan_tab_jobs(root: BookmarkNode) -> list[TabJob]:
    """One ``TabJob`` per bookmark of the workspace, in bookmark order."""
    state = from_bookmark_tree(root)
    jobs: list[TabJob] = []
    for item in state.items:
        group = state.group_of(item)
        jobs.append(
            TabJob(
                url=item.url,
                pinned=item.pinned,
                group=(
                    GroupMetadata(title=group.title, color=group.color, collapsed=group.collapsed)
                    if group is not None and not item.pinned
                    else None
                ),
                title=item.title,
            )
        )
    return jobs


def _has_metadata(tab: Tab) -> bool:
    return bool(tab.title) or tab.status == "complete"


class WorkspaceLoader:
    """Load a workspace into an existing window or restore it into a new one.

    Everything runs under the orchestrator's loading guard so the tab events
    caused here do not trigger syncs.
    """

    def __init__(self, orchestrator: SyncOrchestrator) -> None:
        self._orchestrator = orchestrator
        self._browser = orchestrator.browser
        self._links = orchestrator.links
        self._config = orchestrator.config
        self._metadata_waiters: dict[int, asyncio.Event] = {}
        bus = orchestrator.bus
        if bus is not None:
            bus.subscribe(TabUpdated, self._on_tab_updated)

    async def _on_tab_updated(self, event: TabUpdated) -> None:
        if not event.has_metadata:
            return
        waiter = self._metadata_waiters.get(event.tab_id)
        if waiter is not None:
            waiter.set()

    async def _workspace_root(self, workspace_id: str) -> BookmarkNode:
        try:
            subtree = await self._browser.bookmarks.get_sub_tree(workspace_id)
        except Exception as exc:
            raise_if_cancelled(exc)
            raise WorkspaceNotFoundError(workspace_id) from exc
        if not subtree:
            raise WorkspaceNotFoundError(workspace_id)
        if subtree[0].url is not None:
            raise InvalidDataError(
                f"Workspace {workspace_id} is a bookmark, not a folder",
                details={"workspace_id": workspace_id},
            )
        return subtree[0]

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _create_one(
        self, window_id: int, job: TabJob, index: int | None
    ) -> _CreatedTab | None:
        tab = await guarded(
            self._browser.tabs.create(
                window_id=window_id, url=job.url, pinned=job.pinned, active=False, index=index
            ),
            default=None,
            operation="tabs.create",
            window_id=window_id,
            url=job.url,
        )
        if tab is None or tab.id is None:
            return None
        if not _has_metadata(tab):
            self._metadata_waiters[tab.id] = asyncio.Event()
        return _CreatedTab(job=job, tab_id=tab.id)

    async def create_tabs(
        self, window_id: int, jobs: list[TabJob], *, start_index: int | None = None
    ) -> list[_CreatedTab]:
        """Create tabs ``batch_size`` at a time with a pause between batches."""
        size = self._config.batch_size
        offsets = range(0, len(jobs), size)
        batches = [(offset, jobs[offset : offset + size]) for offset in offsets]
        created: list[_CreatedTab] = []
        for number, (offset, batch) in enumerate(batches):
            if number > 0:
                await asyncio.sleep(self._config.batch_delay_seconds)
            results = await asyncio.gather(
                *(
                    self._create_one(
                        window_id,
                        job,
                        None if start_index is None else start_index + offset + position,
                    )
                    for position, job in enumerate(batch)
                )
            )
            created.extend(result for result in results if result is not None)
            logger.debug(
                "workspace_tab_batch_created",
                extra={
                    "window_id": window_id,
                    "batch": number + 1,
                    "batches": len(batches),
                    "tabs_created": len(created),
                },
            )
        return created

    async def group_tabs(self, window_id: int, created: list[_CreatedTab]) -> int:
        """One ``tabs.group`` call per ``(title, color, collapsed)``; returns groups made."""
        buckets: dict[tuple[str, str, bool], list[int]] = {}
        for entry in created:
            group = entry.job.group
            if group is None:
                continue
            buckets.setdefault((group.title, group.color, group.collapsed), []).append(entry.tab_id)

        made = 0
        for (title, color, collapsed), tab_ids in buckets.items():
            group_id = await guarded(
                self._browser.tabs.group(tab_ids, window_id=window_id),
                default=None,
                operation="tabs.group",
                window_id=window_id,
                group_title=title,
            )
            if group_id is None:
                continue
            await guarded(
                self._browser.tab_groups.update(
                    group_id,
                    title=browser_group_title(title),
                    color=color,
                    collapsed=collapsed,
                ),
                default=None,
                operation="tab_groups.update",
                group_id=group_id,
            )
            made += 1
        return made

    async def _discard_when_ready(self, tab_id: int) -> bool:
        waiter = self._metadata_waiters.get(tab_id)
        try:
            if waiter is not None:
                await asyncio.wait_for(waiter.wait(), timeout=self._config.tab_load_timeout_seconds)
        except TimeoutError:
            logger.debug("tab_metadata_timeout", extra={"tab_id": tab_id})
        finally:
            self._metadata_waiters.pop(tab_id, None)
        discarded = await guarded(
            self._browser.tabs.discard(tab_id),
            default=None,
            operation="tabs.discard",
            level=logging.DEBUG,
            tab_id=tab_id,
        )
        return discarded is not None

    async def discard_tabs(self, created: list[_CreatedTab]) -> int:
        results = await asyncio.gather(
            *(self._discard_when_ready(entry.tab_id) for entry in created)
        )
        return sum(1 for result in results if result)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def load_into_window(
        self, workspace_id: str, window_id: int, keep_current_tabs: bool = False
    ) -> LoadResult:
        """Open the workspace in ``window_id`` and link the window to it.

        Existing tabs are closed unless ``keep_current_tabs``, in which case the
        new tabs are inserted right after the pinned ones.
        """
        started = time.perf_counter()
        result = LoadResult(workspace_id=workspace_id, window_id=window_id, mode="load")
        async with self._orchestrator.loading():
            await guarded(
                self._links.unlink(window_id),
                default=None,
                operation="links.unlink",
                window_id=window_id,
            )
            root = await self._workspace_root(workspace_id)
            existing = await guarded(
                self._browser.tabs.query(window_id=window_id),
                default=[],
                operation="tabs.query",
                window_id=window_id,
            )
            jobs = plan_tab_jobs(root)

            start_index = None
            if keep_current_tabs:
                start_index = sum(1 for tab in existing if tab.pinned)

            created = await self.create_tabs(window_id, jobs, start_index=start_index)
            result.tabs_created = len(created)
            result.tabs_failed = len(jobs) - len(created)
            result.groups_created = await self.group_tabs(window_id, created)
            result.tabs_discarded = await self.discard_tabs(created)

            old_ids = [tab.id for tab in existing if tab.id is not None]
            if not keep_current_tabs and old_ids and created:
                await guarded(
                    self._browser.tabs.remove(old_ids),
                    default=None,
                    operation="tabs.remove",
                    window_id=window_id,
                )
                result.tabs_removed = len(old_ids)

            await self._links.link(window_id, workspace_id)
            self._orchestrator.state_for(workspace_id).window_id = window_id

        result.duration_seconds = time.perf_counter() - started
        record_tabs_created("load", result.tabs_created)
        logger.info(
            "workspace_loaded",
            extra={
                "workspace_id": workspace_id,
                "window_id": window_id,
                "tabs_created": result.tabs_created,
                "keep_current_tabs": keep_current_tabs,
                "duration_ms": round(result.duration_seconds * 1000, 2),
            },
        )
        return result

    async def restore(self, workspace_id: str) -> LoadResult:
        """Open the workspace in a new window linked to it."""
        started = time.perf_counter()
        async with self._orchestrator.loading():
            root = await self._workspace_root(workspace_id)
            try:
                window = await self._browser.windows.create(focused=True)
            except Exception as exc:
                raise_if_cancelled(exc)
                raise WorkspaceOperationError("restore", str(exc), workspace_id) from exc
            if window.id is None:
                raise WorkspaceOperationError("restore", "window has no id", workspace_id)

            result = LoadResult(workspace_id=workspace_id, window_id=window.id, mode="restore")
            await self._links.link(window.id, workspace_id)
            self._orchestrator.state_for(workspace_id).window_id = window.id

            default_tabs = window.tabs
            if default_tabs is None:
                default_tabs = await guarded(
                    self._browser.tabs.query(window_id=window.id),
                    default=[],
                    operation="tabs.query",
                    window_id=window.id,
                )

            jobs = plan_tab_jobs(root)
            created = await self.create_tabs(window.id, jobs)
            result.tabs_created = len(created)
            result.tabs_failed = len(jobs) - len(created)

            default_ids = [tab.id for tab in default_tabs if tab.id is not None]
            if default_ids and created:
                await guarded(
                    self._browser.tabs.remove(default_ids),
                    default=None,
                    operation="tabs.remove",
                    window_id=window.id,
                )
                result.tabs_removed = len(default_ids)

            result.groups_created = await self.group_tabs(window.id, created)
            result.tabs_discarded = await self.discard_tabs(created)

        result.duration_seconds = time.perf_counter() - started
        record_tabs_created("restore", result.tabs_created)
        logger.info(
            "workspace_restored",
            extra={
                "workspace_id": workspace_id,
                "window_id": result.window_id,
                "tabs_created": result.tabs_created,
                "duration_ms": round(result.duration_seconds * 1000, 2),
            },
        )
        return result

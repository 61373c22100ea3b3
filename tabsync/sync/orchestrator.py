"""Debounced, per-workspace serialized sync between windows and workspaces.

Each workspace moves through ``idle -> debouncing -> syncing -> idle``. A new
request while debouncing re-arms the timer; a timer that fires while the
workspace is still syncing is dropped, and the next browser event schedules
another pass.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import TYPE_CHECKING

from tabsync.adapters.browser.events import (
    TabAttached,
    TabCreated,
    TabDetached,
    TabGroupUpdated,
    TabMoved,
    TabRemoved,
    TabUpdated,
    WindowRemoved,
)
from tabsync.adapters.browser.guard import guarded
from tabsync.config.sync import SyncConfig
from tabsync.core.async_utils import cancel_handle, raise_if_cancelled
from tabsync.core.logging_utils import generate_correlation_id
from tabsync.domain.exceptions import NotFoundError, WindowNotFoundError, WorkspaceNotFoundError
from tabsync.observability.metrics import record_sync_pass
from tabsync.reconciliation.apply import ApplyReport, BookmarksApplier, TabsApplier
from tabsync.reconciliation.differ import diff, diff_states
from tabsync.reconciliation.models import EMPTY_STATE, NormalizedState, UpdateItem
from tabsync.reconciliation.normalizer import from_bookmark_tree, from_live_state
from tabsync.reconciliation.tree import collect_bookmark_titles
from tabsync.sync.state import SyncOutcome, WorkspaceSyncState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tabsync.adapters.browser.events import BrowserEvent
    from tabsync.adapters.browser.models import BookmarkNode
    from tabsync.adapters.browser.protocols import BrowserApi
    from tabsync.infrastructure.messaging.event_bus import EventBus
    from tabsync.workspaces.links import WindowWorkspaceLinks

logger = logging.getLogger(__name__)

_TAB_EVENTS = (TabCreated, TabUpdated, TabRemoved, TabMoved, TabAttached, TabDetached)


class SyncOrchestrator:
    """Drives reconciliation passes for linked windows.

    One instance owns the per-workspace state records and the "load in
    progress" guard, so independent instances never share state.
    """

    def __init__(
        self,
        browser: BrowserApi,
        links: WindowWorkspaceLinks,
        config: SyncConfig | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self._browser = browser
        self._links = links
        self._config = config or SyncConfig()
        self._bus: EventBus | None = None
        self._states: dict[str, WorkspaceSyncState] = {}
        self._loading_depth = 0
        self._closed_windows: set[int] = set()
        self._tasks: set[asyncio.Task[SyncOutcome]] = set()
        self._bookmarks = BookmarksApplier(browser, max_depth=self._config.max_tree_depth)
        self._tabs = TabsApplier(browser)
        if bus is not None:
            self.register(bus)

    @property
    def browser(self) -> BrowserApi:
        return self._browser

    @property
    def links(self) -> WindowWorkspaceLinks:
        return self._links

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def bus(self) -> EventBus | None:
        return self._bus

    # ------------------------------------------------------------------
    # State records
    # ------------------------------------------------------------------

    def state_for(self, workspace_id: str) -> WorkspaceSyncState:
        state = self._states.get(workspace_id)
        if state is None:
            state = WorkspaceSyncState(workspace_id=workspace_id)
            self._states[workspace_id] = state
        return state

    def get_state(self, workspace_id: str) -> WorkspaceSyncState | None:
        return self._states.get(workspace_id)

    def forget(self, workspace_id: str) -> None:
        """Drop the record of a deleted workspace, cancelling its timer."""
        state = self._states.pop(workspace_id, None)
        if state is not None:
            cancel_handle(state.pending)

    def mark_renamed(self, workspace_id: str, url: str) -> None:
        self.state_for(workspace_id).renamed_urls.add(url)

    def renamed_urls(self, workspace_id: str) -> frozenset[str]:
        state = self._states.get(workspace_id)
        return frozenset(state.renamed_urls) if state is not None else frozenset()

    # ------------------------------------------------------------------
    # Loading guard
    # ------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self._loading_depth > 0

    @asynccontextmanager
    async def loading(self) -> AsyncIterator[None]:
        """Suppress outbound syncs while the engine itself writes tabs."""
        self._loading_depth += 1
        try:
            yield
        finally:
            self._loading_depth -= 1

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def request_sync(self, window_id: int, workspace_id: str) -> None:
        """Schedule a pass after the debounce window, coalescing earlier requests."""
        state = self.state_for(workspace_id)
        state.window_id = window_id
        self._closed_windows.discard(window_id)
        rearmed = cancel_handle(state.pending)
        loop = asyncio.get_running_loop()
        state.pending = loop.call_later(
            self._config.debounce_seconds, self._on_debounce_elapsed, workspace_id
        )
        logger.debug(
            "sync_requested",
            extra={"workspace_id": workspace_id, "window_id": window_id, "rearmed": rearmed},
        )

    def _on_debounce_elapsed(self, workspace_id: str) -> None:
        state = self._states.get(workspace_id)
        if state is None:
            return
        state.pending = None
        if state.is_syncing:
            state.dropped_requests += 1
            logger.debug("sync_request_dropped", extra={"workspace_id": workspace_id})
            return
        if state.window_id is None:
            return

        state.is_syncing = True
        task = asyncio.get_running_loop().create_task(
            self._run_pass(state, state.window_id), name=f"tabsync-sync-{workspace_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def sync_now(self, window_id: int, workspace_id: str) -> SyncOutcome:
        """Run one pass immediately, unless one is already running."""
        state = self.state_for(workspace_id)
        if state.is_syncing:
            state.dropped_requests += 1
            return SyncOutcome(
                workspace_id=workspace_id,
                window_id=window_id,
                status="skipped",
                error="sync already in progress",
            )
        cancel_handle(state.pending)
        state.pending = None
        state.window_id = window_id
        state.is_syncing = True
        return await self._run_pass(state, window_id)

    async def wait_idle(self) -> None:
        """Wait for every scheduled pass that has already started."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Sync pass
    # ------------------------------------------------------------------

    async def _window_exists(self, window_id: int) -> bool:
        if window_id in self._closed_windows:
            return False
        window = await guarded(
            self._browser.windows.get(window_id),
            default=None,
            operation="windows.get",
            level=logging.DEBUG,
            window_id=window_id,
        )
        return window is not None

    async def _load_workspace_root(self, workspace_id: str) -> BookmarkNode:
        try:
            subtree = await self._browser.bookmarks.get_sub_tree(workspace_id)
        except Exception as exc:
            raise_if_cancelled(exc)
            raise WorkspaceNotFoundError(workspace_id) from exc
        if not subtree:
            raise WorkspaceNotFoundError(workspace_id)
        return subtree[0]

    async def _load_live_state(self, window_id: int) -> NormalizedState:
        tabs = await self._browser.tabs.query(window_id=window_id)
        groups = await self._browser.tab_groups.query(window_id=window_id)
        return from_live_state(tabs, groups)

    def _preserve_renamed_titles(
        self, live: NormalizedState, root: BookmarkNode, renamed: frozenset[str]
    ) -> NormalizedState:
        """Carry user-chosen bookmark titles over the live tab titles."""
        if not renamed:
            return live
        titles = collect_bookmark_titles(root, max_depth=self._config.max_tree_depth)
        items = tuple(
            replace(item, title=titles.get(item.url, item.title), renamed=True)
            if item.url in renamed
            else item
            for item in live.items
        )
        return replace(live, items=items)

    async def _remove_child(self, child: BookmarkNode) -> bool:
        if child.url is None:
            await self._browser.bookmarks.remove_tree(child.id)
        else:
            await self._browser.bookmarks.remove(child.id)
        return True

    async def _clear_workspace(self, root: BookmarkNode, correlation_id: str) -> int:
        """Remove every child of ``root``; returns how many could not be removed."""
        failed = 0
        for child in root.children or ():
            removed = await guarded(
                self._remove_child(child),
                default=False,
                operation="bookmarks.remove_tree" if child.url is None else "bookmarks.remove",
                workspace_id=root.id,
                node_id=child.id,
                correlation_id=correlation_id,
            )
            if not removed:
                failed += 1
        return failed

    async def _run_pass(self, state: WorkspaceSyncState, window_id: int) -> SyncOutcome:
        workspace_id = state.workspace_id
        correlation_id = generate_correlation_id()
        started = time.perf_counter()
        outcome = SyncOutcome(
            workspace_id=workspace_id,
            window_id=window_id,
            status="error",
            correlation_id=correlation_id,
        )
        try:
            if not await self._window_exists(window_id):
                raise WindowNotFoundError(window_id)

            live = await self._load_live_state(window_id)
            root = await self._load_workspace_root(workspace_id)
            renamed = frozenset(state.renamed_urls)
            if self._config.preserve_renamed_titles:
                live = self._preserve_renamed_titles(live, root, renamed)

            current = from_bookmark_tree(root, renamed)
            if not diff_states(live, current).has_changes:
                outcome.status = "noop"
                return outcome

            # Last check before destructive writes: a window closed meanwhile
            # leaves the workspace untouched.
            if not await self._window_exists(window_id):
                raise WindowNotFoundError(window_id)

            outcome.cleanup_failures = await self._clear_workspace(root, correlation_id)
            remaining = EMPTY_STATE
            if outcome.cleanup_failures:
                # Rebuild around the leftovers instead of duplicating them.
                root = await self._load_workspace_root(workspace_id)
                remaining = from_bookmark_tree(root, renamed)
            operations = diff(live, remaining)
            outcome.report = await self._bookmarks.apply(workspace_id, operations)
            outcome.operations = len(operations)
            outcome.status = "success"
            return outcome
        except NotFoundError as exc:
            outcome.status = "skipped"
            outcome.error = exc.message
            logger.info(
                "workspace_sync_skipped",
                extra={
                    "workspace_id": workspace_id,
                    "window_id": window_id,
                    "reason": exc.message,
                    "correlation_id": correlation_id,
                },
            )
            return outcome
        except Exception as exc:
            raise_if_cancelled(exc)
            state.failures += 1
            outcome.status = "error"
            outcome.error = str(exc)
            logger.exception(
                "workspace_sync_failed",
                extra={
                    "workspace_id": workspace_id,
                    "window_id": window_id,
                    "error": str(exc),
                    "correlation_id": correlation_id,
                },
            )
            return outcome
        finally:
            state.is_syncing = False
            self._closed_windows.discard(window_id)
            state.passes += 1
            outcome.duration_seconds = time.perf_counter() - started
            record_sync_pass(outcome.status, outcome.duration_seconds)
            logger.info(
                "workspace_sync_finished",
                extra={
                    "workspace_id": workspace_id,
                    "window_id": window_id,
                    "status": outcome.status,
                    "operations": outcome.operations,
                    "cleanup_failures": outcome.cleanup_failures,
                    "duration_ms": round(outcome.duration_seconds * 1000, 2),
                    "correlation_id": correlation_id,
                },
            )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def sync_if_linked(self, tab_id: int | None = None, window_id: int | None = None) -> bool:
        """Request a sync for the workspace linked to the tab's or given window.

        Returns True when a sync was requested.
        """
        if self.is_loading:
            logger.debug("sync_suppressed_while_loading", extra={"tab_id": tab_id})
            return False

        if window_id is None and tab_id is not None:
            tab = await guarded(
                self._browser.tabs.get(tab_id),
                default=None,
                operation="tabs.get",
                level=logging.DEBUG,
                tab_id=tab_id,
            )
            window_id = tab.window_id if tab is not None else None
        if window_id is None:
            return False

        workspace_id = await guarded(
            self._links.get_workspace_for_window(window_id),
            default=None,
            operation="links.get_workspace_for_window",
            window_id=window_id,
        )
        if workspace_id is None:
            return False
        self.request_sync(window_id, workspace_id)
        return True

    async def link_window(self, window_id: int, workspace_id: str) -> None:
        await self._links.link(window_id, workspace_id)
        for state in self._states.values():
            if state.window_id == window_id and state.workspace_id != workspace_id:
                cancel_handle(state.pending)
                state.pending = None
                state.window_id = None
        self.request_sync(window_id, workspace_id)

    async def pull_workspace(self, window_id: int, workspace_id: str) -> ApplyReport:
        """Bring a window in line with its workspace without recreating tabs."""
        async with self.loading():
            state = self.state_for(workspace_id)
            root = await self._load_workspace_root(workspace_id)
            stored = from_bookmark_tree(root, state.renamed_urls)
            live = await self._load_live_state(window_id)

            result = diff_states(stored, live)
            for operation in result.operations:
                if isinstance(operation, UpdateItem) and operation.changes.get("renamed"):
                    item = live.find_item_by_id(operation.item_id)
                    if item is not None:
                        state.renamed_urls.add(item.url)

            if not result.has_changes:
                return ApplyReport(target=TabsApplier.target)
            return await self._tabs.apply(window_id, result.operations)

    async def on_window_closed(self, window_id: int) -> None:
        """Stop syncing a closed window.

        Pending timers for its workspace are cancelled and the link is removed.
        A pass that is already running finishes on its own but performs no
        bookmark writes once it sees the window is gone.
        """
        for state in self._states.values():
            if state.window_id == window_id:
                cancel_handle(state.pending)
                state.pending = None
                if state.is_syncing:
                    # Held until that pass ends.
                    self._closed_windows.add(window_id)

        try:
            workspace_id = await self._links.unlink(window_id)
        except Exception as exc:
            raise_if_cancelled(exc)
            logger.warning(
                "window_unlink_failed", extra={"window_id": window_id, "error": str(exc)}
            )
            return
        if workspace_id is not None:
            logger.info(
                "linked_window_closed",
                extra={"window_id": window_id, "workspace_id": workspace_id},
            )

    # ------------------------------------------------------------------
    # Event wiring
    # ------------------------------------------------------------------

    def register(self, bus: EventBus) -> None:
        for event_type in _TAB_EVENTS:
            bus.subscribe(event_type, self._on_tab_event)
        bus.subscribe(TabGroupUpdated, self._on_tab_event)
        bus.subscribe(WindowRemoved, self._on_window_removed)
        self._bus = bus

    async def _on_tab_event(self, event: BrowserEvent) -> None:
        if isinstance(event, TabRemoved) and event.is_window_closing:
            return
        window_id = getattr(event, "window_id", None)
        tab_id = getattr(event, "tab_id", None)
        await self.sync_if_linked(tab_id=tab_id, window_id=window_id)

    async def _on_window_removed(self, event: WindowRemoved) -> None:
        await self.on_window_closed(event.window_id)

    async def shutdown(self) -> None:
        """Cancel pending timers and let passes already running finish."""
        cancelled = 0
        for state in self._states.values():
            if cancel_handle(state.pending):
                cancelled += 1
            state.pending = None
        await self.wait_idle()
        logger.info("sync_orchestrator_stopped", extra={"cancelled_timers": cancelled})

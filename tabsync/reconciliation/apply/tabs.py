"""Replay operations against the live tabs of one window."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, assert_never

from tabsync.core.async_utils import raise_if_cancelled
from tabsync.reconciliation.apply.ordering import sort_operations
from tabsync.reconciliation.apply.report import ApplyReport
from tabsync.reconciliation.metadata import (
    browser_group_title,
    group_key_title,
    normalize_color,
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

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tabsync.adapters.browser.protocols import BrowserApi
    from tabsync.reconciliation.models import GroupKey, NormalizedGroup, Operation

logger = logging.getLogger(__name__)


class _TabsPass:
    """State for a single apply pass over one window."""

    def __init__(self, browser: BrowserApi, window_id: int, report: ApplyReport) -> None:
        self.browser = browser
        self.window_id = window_id
        self.report = report
        self.group_ids: dict[GroupKey, int] = {}
        self.added_groups: dict[str, NormalizedGroup] = {}
        # tab id -> requested rank, settled once all operations ran
        self.positions: dict[int, int] = {}

    async def load_groups(self) -> None:
        try:
            groups = await self.browser.tab_groups.query(window_id=self.window_id)
        except Exception as exc:
            raise_if_cancelled(exc)
            logger.warning(
                "tabs_apply_group_query_failed",
                extra={"window_id": self.window_id, "error": str(exc)},
            )
            return
        for group in groups:
            key = (group_key_title(group.title), normalize_color(group.color))
            self.group_ids.setdefault(key, group.id)

    async def resolve_group(self, group: NormalizedGroup, tab_ids: list[int]) -> int:
        """Put ``tab_ids`` into the window group matching ``group``'s key.

        Creates and decorates the group when the window has none yet.
        """
        existing = self.group_ids.get(group.key)
        if existing is not None:
            return await self.browser.tabs.group(tab_ids, group_id=existing)

        group_id = await self.browser.tabs.group(tab_ids, window_id=self.window_id)
        self.group_ids[group.key] = group_id
        await self.browser.tab_groups.update(
            group_id,
            title=browser_group_title(group.title),
            color=normalize_color(group.color),
            collapsed=group.collapsed,
        )
        return group_id

    def group_for(
        self, group: NormalizedGroup | None, group_id: str | None
    ) -> NormalizedGroup | None:
        if group is not None:
            return group
        if group_id is not None:
            return self.added_groups.get(group_id)
        return None

    async def dispatch(self, operation: Operation) -> bool:
        """Run one operation; False means nothing applicable was done."""
        match operation:
            case AddItem(item=item, group=group):
                tab = await self.browser.tabs.create(
                    window_id=self.window_id,
                    url=item.url,
                    pinned=item.pinned,
                    active=False,
                    index=item.index,
                )
                if tab.id is not None:
                    self.positions[tab.id] = item.index
                target_group = self.group_for(group, item.group_id)
                if tab.id is not None and target_group is not None and not item.pinned:
                    await self.resolve_group(target_group, [tab.id])
                return True
            case DeleteItem(item_id=item_id):
                await self.browser.tabs.remove(int(item_id))
                self.positions.pop(int(item_id), None)
                return True
            case UpdateItem(item_id=item_id, changes=changes, group=group):
                tab_id = int(item_id)
                touched = False
                if "pinned" in changes:
                    await self.browser.tabs.update(tab_id, pinned=changes["pinned"])
                    touched = True
                if "group_id" in changes:
                    new_group_id = changes["group_id"]
                    if new_group_id is None:
                        await self.browser.tabs.ungroup(tab_id)
                        touched = True
                    else:
                        target_group = self.group_for(group, new_group_id)
                        if target_group is None:
                            logger.warning(
                                "tabs_apply_group_unresolved",
                                extra={"tab_id": tab_id, "group_id": new_group_id},
                            )
                        else:
                            await self.resolve_group(target_group, [tab_id])
                            touched = True
                # Tabs cannot be retitled; title, renamed and index are bookkeeping only.
                return touched
            case MoveItem(item_id=item_id, new_index=new_index):
                tab_id = int(item_id)
                await self.browser.tabs.move(tab_id, index=new_index)
                self.positions[tab_id] = new_index
                return True
            case AddGroup(group=group):
                # Tab groups cannot exist empty; the first member creates it.
                self.added_groups[group.id] = group
                return True
            case DeleteGroup(group_id=group_id):
                members = await self.browser.tabs.query(
                    window_id=self.window_id, group_id=int(group_id)
                )
                member_ids = [tab.id for tab in members if tab.id is not None]
                if member_ids:
                    await self.browser.tabs.ungroup(member_ids)
                for key, known_id in list(self.group_ids.items()):
                    if known_id == int(group_id):
                        del self.group_ids[key]
                return True
            case UpdateGroup(group_id=group_id, changes=changes):
                patch: dict[str, Any] = {}
                if "title" in changes:
                    patch["title"] = browser_group_title(changes["title"])
                if "color" in changes:
                    patch["color"] = normalize_color(changes["color"])
                if "collapsed" in changes:
                    patch["collapsed"] = changes["collapsed"]
                if not patch:
                    return False
                await self.browser.tab_groups.update(int(group_id), **patch)
                return True
            case _:
                assert_never(operation)

    async def settle_order(self) -> None:
        """Move tabs so every requested rank holds after adds and deletes.

        Tabs without a requested rank keep their relative order and fill the
        remaining slots.
        """
        if not self.positions:
            return
        try:
            tabs = await self.browser.tabs.query(window_id=self.window_id)
        except Exception as exc:
            raise_if_cancelled(exc)
            logger.warning(
                "tabs_apply_settle_query_failed",
                extra={"window_id": self.window_id, "error": str(exc)},
            )
            return

        ordered = sorted(tabs, key=lambda tab: tab.index)
        current = [tab.id for tab in ordered if tab.id is not None]
        slots: list[int | None] = [None] * len(current)
        leftovers: list[int] = []
        for tab_id, rank in sorted(self.positions.items(), key=lambda entry: entry[1]):
            if tab_id not in current:
                continue
            if 0 <= rank < len(slots) and slots[rank] is None:
                slots[rank] = tab_id
            else:
                leftovers.append(tab_id)

        placed = {tab_id for tab_id in slots if tab_id is not None}
        unplaced = [
            tab_id for tab_id in current if tab_id not in placed and tab_id not in leftovers
        ]
        fillers = iter(unplaced + leftovers)
        desired = [tab_id if tab_id is not None else next(fillers) for tab_id in slots]

        for rank, tab_id in enumerate(desired):
            if current[rank] == tab_id:
                continue
            try:
                await self.browser.tabs.move(tab_id, index=rank)
            except Exception as exc:
                raise_if_cancelled(exc)
                self.report.errors.append(f"settle_order: {exc}")
                logger.warning(
                    "tabs_apply_settle_move_failed",
                    extra={"tab_id": tab_id, "index": rank, "error": str(exc)},
                )
                continue
            current.remove(tab_id)
            current.insert(rank, tab_id)


class TabsApplier:
    """Apply operations to a browser window.

    Operation ids are tab ids and tab group ids of that window. Each operation
    is attempted on its own; a failing one is logged and counted and the rest
    of the batch still runs.
    """

    target = "tabs"

    def __init__(self, browser: BrowserApi) -> None:
        self._browser = browser

    async def apply(self, window_id: int, operations: Iterable[Operation]) -> ApplyReport:
        started = time.perf_counter()
        report = ApplyReport(target=self.target)
        ordered = sort_operations(operations)
        if not ordered:
            return report

        state = _TabsPass(self._browser, window_id, report)
        await state.load_groups()

        for operation in ordered:
            try:
                done = await state.dispatch(operation)
            except Exception as exc:
                raise_if_cancelled(exc)
                report.record_failed(operation, exc)
                logger.warning(
                    "tabs_apply_operation_failed",
                    extra={
                        "window_id": window_id,
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

        await state.settle_order()

        report.duration_seconds = time.perf_counter() - started
        logger.info(
            "tabs_apply_completed",
            extra={
                "window_id": window_id,
                "operations": report.total,
                "applied": report.applied,
                "skipped": report.skipped,
                "failed": report.failed,
                "duration_ms": round(report.duration_seconds * 1000, 2),
            },
        )
        return report

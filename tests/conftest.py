"""Pytest configuration and shared fixtures.

``FakeBrowser`` is an in-memory stand-in for the extension runtime. It keeps
the platform rules the engine relies on: tab indices are positions inside a
window, a tab group disappears with its last member, bookmark folders must be
empty before ``remove`` and every call can be made to fail.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

import pytest

from tabsync.adapters.browser.errors import (
    BookmarkNodeNotFoundError,
    BrowserApiError,
    GroupNotFoundError,
    TabNotFoundError,
)
from tabsync.adapters.browser.models import TAB_GROUP_ID_NONE, BookmarkNode, Tab, TabGroup, Window
from tabsync.config import SyncConfig
from tabsync.domain.exceptions import WindowNotFoundError
from tabsync.infrastructure.messaging import EventBus
from tabsync.reconciliation.metadata import PINNED_FOLDER_NAME
from tabsync.sync import SyncOrchestrator
from tabsync.workspaces import WindowWorkspaceLinks, WorkspacesService

NEW_TAB_URL = "chrome://newtab/"
ROOT_ID = "0"
BOOKMARKS_BAR_ID = "1"
OTHER_BOOKMARKS_ID = "2"


class FakeFailure(Exception):
    """Raised by the fake browser for calls configured to fail."""


@dataclass
class _TabRecord:
    id: int
    window_id: int
    url: str
    title: str | None = None
    pinned: bool = False
    group_id: int = TAB_GROUP_ID_NONE
    status: str = "complete"
    discarded: bool = False


@dataclass
class _GroupRecord:
    id: int
    window_id: int
    title: str = ""
    color: str = "grey"
    collapsed: bool = False


@dataclass
class _NodeRecord:
    id: str
    parent_id: str | None
    title: str
    url: str | None = None
    children: list[str] = field(default_factory=list)


def _as_list(ids: int | list[int]) -> list[int]:
    return list(ids) if isinstance(ids, list) else [ids]


class _FakeApi:
    def __init__(self, browser: FakeBrowser, name: str) -> None:
        self._browser = browser
        self._name = name

    def _call(self, operation: str, **details: Any) -> None:
        qualified = f"{self._name}.{operation}"
        self._browser.calls.append((qualified, details))
        if qualified in self._browser.failing:
            raise FakeFailure(f"{qualified} failed")


class FakeTabs(_FakeApi):
    def __init__(self, browser: FakeBrowser) -> None:
        super().__init__(browser, "tabs")

    def _record(self, tab_id: int) -> _TabRecord:
        record = self._browser.tab_records.get(tab_id)
        if record is None:
            raise TabNotFoundError(tab_id)
        return record

    async def query(
        self,
        *,
        window_id: int | None = None,
        group_id: int | None = None,
        pinned: bool | None = None,
    ) -> list[Tab]:
        self._call("query", window_id=window_id, group_id=group_id, pinned=pinned)
        window_ids = [window_id] if window_id is not None else list(self._browser.window_tabs)
        tabs: list[Tab] = []
        for wid in window_ids:
            for tab_id in self._browser.window_tabs.get(wid, []):
                record = self._browser.tab_records[tab_id]
                if group_id is not None and record.group_id != group_id:
                    continue
                if pinned is not None and record.pinned != pinned:
                    continue
                tabs.append(self._browser.tab_model(tab_id))
        return tabs

    async def get(self, tab_id: int) -> Tab:
        self._call("get", tab_id=tab_id)
        self._record(tab_id)
        return self._browser.tab_model(tab_id)

    async def create(
        self,
        *,
        window_id: int,
        url: str,
        pinned: bool = False,
        active: bool = False,
        index: int | None = None,
    ) -> Tab:
        self._call("create", window_id=window_id, url=url, pinned=pinned, index=index)
        title = self._browser.page_titles.get(url)
        tab_id = self._browser.insert_tab(
            window_id,
            url,
            title=title,
            pinned=pinned,
            index=index,
            status="complete" if title else "loading",
        )
        return self._browser.tab_model(tab_id)

    async def update(
        self,
        tab_id: int,
        *,
        pinned: bool | None = None,
        url: str | None = None,
        active: bool | None = None,
    ) -> Tab:
        self._call("update", tab_id=tab_id, pinned=pinned, url=url)
        record = self._record(tab_id)
        if pinned is not None:
            record.pinned = pinned
        if url is not None:
            record.url = url
        return self._browser.tab_model(tab_id)

    async def remove(self, tab_ids: int | list[int]) -> None:
        ids = _as_list(tab_ids)
        self._call("remove", tab_ids=ids)
        for tab_id in ids:
            record = self._record(tab_id)
            self._browser.window_tabs[record.window_id].remove(tab_id)
            del self._browser.tab_records[tab_id]
        self._browser.prune_groups()

    async def move(
        self, tab_ids: int | list[int], *, index: int, window_id: int | None = None
    ) -> Tab | list[Tab]:
        ids = _as_list(tab_ids)
        self._call("move", tab_ids=ids, index=index, window_id=window_id)
        for offset, tab_id in enumerate(ids):
            record = self._record(tab_id)
            self._browser.window_tabs[record.window_id].remove(tab_id)
            if window_id is not None:
                record.window_id = window_id
            order = self._browser.window_tabs[record.window_id]
            position = index + offset
            if index < 0 or position > len(order):
                order.append(tab_id)
            else:
                order.insert(position, tab_id)
        moved = [self._browser.tab_model(tab_id) for tab_id in ids]
        return moved if isinstance(tab_ids, list) else moved[0]

    async def group(
        self,
        tab_ids: int | list[int],
        *,
        group_id: int | None = None,
        window_id: int | None = None,
    ) -> int:
        ids = _as_list(tab_ids)
        self._call("group", tab_ids=ids, group_id=group_id, window_id=window_id)
        records = [self._record(tab_id) for tab_id in ids]
        if group_id is None:
            target_window = window_id if window_id is not None else records[0].window_id
            group_id = self._browser.new_group(target_window)
        elif group_id not in self._browser.group_records:
            raise GroupNotFoundError(group_id)
        for record in records:
            record.group_id = group_id
        self._browser.prune_groups()
        return group_id

    async def ungroup(self, tab_ids: int | list[int]) -> None:
        ids = _as_list(tab_ids)
        self._call("ungroup", tab_ids=ids)
        for tab_id in ids:
            self._record(tab_id).group_id = TAB_GROUP_ID_NONE
        self._browser.prune_groups()

    async def discard(self, tab_id: int) -> Tab | None:
        self._call("discard", tab_id=tab_id)
        self._record(tab_id).discarded = True
        return self._browser.tab_model(tab_id)


class FakeTabGroups(_FakeApi):
    def __init__(self, browser: FakeBrowser) -> None:
        super().__init__(browser, "tab_groups")

    async def query(self, *, window_id: int | None = None) -> list[TabGroup]:
        self._call("query", window_id=window_id)
        return [
            self._browser.group_model(record.id)
            for record in self._browser.group_records.values()
            if window_id is None or record.window_id == window_id
        ]

    async def update(
        self,
        group_id: int,
        *,
        title: str | None = None,
        color: str | None = None,
        collapsed: bool | None = None,
    ) -> TabGroup:
        self._call("update", group_id=group_id, title=title, color=color, collapsed=collapsed)
        record = self._browser.group_records.get(group_id)
        if record is None:
            raise GroupNotFoundError(group_id)
        if title is not None:
            record.title = title
        if color is not None:
            record.color = color
        if collapsed is not None:
            record.collapsed = collapsed
        return self._browser.group_model(group_id)


class FakeWindows(_FakeApi):
    def __init__(self, browser: FakeBrowser) -> None:
        super().__init__(browser, "windows")

    async def get_all(self, *, populate: bool = False) -> list[Window]:
        self._call("get_all")
        return [self._browser.window_model(wid, populate) for wid in self._browser.window_tabs]

    async def get(self, window_id: int, *, populate: bool = False) -> Window:
        self._call("get", window_id=window_id)
        if window_id not in self._browser.window_tabs:
            raise WindowNotFoundError(window_id)
        return self._browser.window_model(window_id, populate)

    async def create(self, *, focused: bool = True, url: str | None = None) -> Window:
        self._call("create", focused=focused, url=url)
        window_id = self._browser.open_window()
        self._browser.insert_tab(window_id, url or NEW_TAB_URL, title="New Tab")
        return self._browser.window_model(window_id, populate=True)


class FakeBookmarks(_FakeApi):
    def __init__(self, browser: FakeBrowser) -> None:
        super().__init__(browser, "bookmarks")

    def _record(self, node_id: str) -> _NodeRecord:
        record = self._browser.node_records.get(node_id)
        if record is None:
            raise BookmarkNodeNotFoundError(node_id)
        return record

    async def get_tree(self) -> list[BookmarkNode]:
        self._call("get_tree")
        return [self._browser.node_model(ROOT_ID, deep=True)]

    async def get_children(self, node_id: str) -> list[BookmarkNode]:
        self._call("get_children", node_id=node_id)
        record = self._record(node_id)
        return [self._browser.node_model(child, deep=False) for child in record.children]

    async def get_sub_tree(self, node_id: str) -> list[BookmarkNode]:
        self._call("get_sub_tree", node_id=node_id)
        self._record(node_id)
        return [self._browser.node_model(node_id, deep=True)]

    async def create(
        self,
        *,
        parent_id: str,
        title: str,
        url: str | None = None,
        index: int | None = None,
    ) -> BookmarkNode:
        self._call("create", parent_id=parent_id, title=title, url=url, index=index)
        parent = self._record(parent_id)
        if parent.url is not None:
            raise BrowserApiError("bookmarks", "create", "Parent must be a folder")
        node_id = self._browser.insert_node(parent_id, title, url, index)
        return self._browser.node_model(node_id, deep=False)

    async def update(
        self, node_id: str, *, title: str | None = None, url: str | None = None
    ) -> BookmarkNode:
        self._call("update", node_id=node_id, title=title, url=url)
        record = self._record(node_id)
        if title is not None:
            record.title = title
        if url is not None:
            record.url = url
        return self._browser.node_model(node_id, deep=False)

    async def remove(self, node_id: str) -> None:
        self._call("remove", node_id=node_id)
        record = self._record(node_id)
        if record.children:
            raise BrowserApiError("bookmarks", "remove", "Can't remove non-empty folder")
        self._browser.detach_node(node_id)
        del self._browser.node_records[node_id]

    async def remove_tree(self, node_id: str) -> None:
        self._call("remove_tree", node_id=node_id)
        self._record(node_id)
        self._browser.detach_node(node_id)
        stack = [node_id]
        while stack:
            current = self._browser.node_records.pop(stack.pop())
            stack.extend(current.children)

    async def move(
        self, node_id: str, *, parent_id: str | None = None, index: int | None = None
    ) -> BookmarkNode:
        self._call("move", node_id=node_id, parent_id=parent_id, index=index)
        record = self._record(node_id)
        destination = parent_id if parent_id is not None else record.parent_id
        self._record(destination)
        self._browser.detach_node(node_id)
        self._browser.attach_node(node_id, destination, index)
        return self._browser.node_model(node_id, deep=False)


class FakeStorage(_FakeApi):
    def __init__(self, browser: FakeBrowser) -> None:
        super().__init__(browser, "storage")
        self.data: dict[str, Any] = {}

    async def get(self, keys: list[str]) -> dict[str, Any]:
        self._call("get", keys=keys)
        return {key: copy.deepcopy(self.data[key]) for key in keys if key in self.data}

    async def set(self, items: dict[str, Any]) -> None:
        self._call("set", keys=sorted(items))
        self.data.update(copy.deepcopy(items))


class FakeBrowser:
    """In-memory ``BrowserApi`` with helpers to build and inspect state."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failing: set[str] = set()
        self.page_titles: dict[str, str] = {}

        self.tab_records: dict[int, _TabRecord] = {}
        self.window_tabs: dict[int, list[int]] = {}
        self.group_records: dict[int, _GroupRecord] = {}
        self.node_records: dict[str, _NodeRecord] = {ROOT_ID: _NodeRecord(ROOT_ID, None, "")}
        self._next_window_id = 1
        self._next_tab_id = 100
        self._next_group_id = 500
        self._next_node_id = 10

        self.tabs = FakeTabs(self)
        self.tab_groups = FakeTabGroups(self)
        self.windows = FakeWindows(self)
        self.bookmarks = FakeBookmarks(self)
        self.storage = FakeStorage(self)

        self._add_fixed_node(BOOKMARKS_BAR_ID, "Bookmarks bar")
        self._add_fixed_node(OTHER_BOOKMARKS_ID, "Other bookmarks")

    # -- failure injection and call log -------------------------------------

    def fail(self, *operations: str) -> None:
        self.failing.update(operations)

    def recover(self, *operations: str) -> None:
        self.failing.difference_update(operations)

    def calls_to(self, operation: str) -> list[dict[str, Any]]:
        return [details for name, details in self.calls if name == operation]

    # -- windows, tabs and groups -------------------------------------------

    def open_window(self) -> int:
        window_id = self._next_window_id
        self._next_window_id += 1
        self.window_tabs[window_id] = []
        return window_id

    def close_window(self, window_id: int) -> None:
        for tab_id in self.window_tabs.pop(window_id, []):
            self.tab_records.pop(tab_id, None)
        for group_id in [g.id for g in self.group_records.values() if g.window_id == window_id]:
            del self.group_records[group_id]

    def insert_tab(
        self,
        window_id: int,
        url: str,
        *,
        title: str | None = None,
        pinned: bool = False,
        index: int | None = None,
        status: str = "complete",
        group_id: int = TAB_GROUP_ID_NONE,
    ) -> int:
        if window_id not in self.window_tabs:
            raise BrowserApiError("tabs", "create", f"No window with id: {window_id}")
        tab_id = self._next_tab_id
        self._next_tab_id += 1
        self.tab_records[tab_id] = _TabRecord(
            id=tab_id,
            window_id=window_id,
            url=url,
            title=title,
            pinned=pinned,
            group_id=group_id,
            status=status,
        )
        order = self.window_tabs[window_id]
        if index is None or index < 0 or index > len(order):
            order.append(tab_id)
        else:
            order.insert(index, tab_id)
        return tab_id

    def add_tab(
        self,
        window_id: int,
        url: str,
        title: str | None = None,
        *,
        pinned: bool = False,
        group_id: int = TAB_GROUP_ID_NONE,
    ) -> int:
        return self.insert_tab(
            window_id, url, title=title or url, pinned=pinned, group_id=group_id
        )

    def new_group(self, window_id: int) -> int:
        group_id = self._next_group_id
        self._next_group_id += 1
        self.group_records[group_id] = _GroupRecord(id=group_id, window_id=window_id)
        return group_id

    def add_group(
        self, window_id: int, title: str, color: str = "grey", collapsed: bool = False
    ) -> int:
        group_id = self.new_group(window_id)
        record = self.group_records[group_id]
        record.title = title
        record.color = color
        record.collapsed = collapsed
        return group_id

    def prune_groups(self) -> None:
        used = {record.group_id for record in self.tab_records.values()}
        for group_id in [gid for gid in self.group_records if gid not in used]:
            del self.group_records[group_id]

    def tab_model(self, tab_id: int) -> Tab:
        record = self.tab_records[tab_id]
        return Tab(
            id=record.id,
            window_id=record.window_id,
            index=self.window_tabs[record.window_id].index(tab_id),
            url=record.url,
            title=record.title,
            pinned=record.pinned,
            group_id=record.group_id,
            status=record.status,
            discarded=record.discarded,
        )

    def group_model(self, group_id: int) -> TabGroup:
        record = self.group_records[group_id]
        return TabGroup(
            id=record.id,
            window_id=record.window_id,
            title=record.title,
            color=record.color,
            collapsed=record.collapsed,
        )

    def window_model(self, window_id: int, populate: bool = False) -> Window:
        tabs = [self.tab_model(tab_id) for tab_id in self.window_tabs[window_id]]
        return Window(id=window_id, tabs=tabs if populate else None)

    def window_layout(self, window_id: int) -> list[tuple[str, bool, str | None]]:
        """``(url, pinned, group title)`` per tab in window order."""
        layout: list[tuple[str, bool, str | None]] = []
        for tab_id in self.window_tabs[window_id]:
            record = self.tab_records[tab_id]
            group = self.group_records.get(record.group_id)
            layout.append((record.url, record.pinned, group.title if group else None))
        return layout

    def window_urls(self, window_id: int) -> list[str]:
        return [self.tab_records[tab_id].url for tab_id in self.window_tabs[window_id]]

    # -- bookmarks ----------------------------------------------------------

    def _add_fixed_node(self, node_id: str, title: str) -> None:
        self.node_records[node_id] = _NodeRecord(node_id, ROOT_ID, title)
        self.node_records[ROOT_ID].children.append(node_id)

    def insert_node(
        self, parent_id: str, title: str, url: str | None = None, index: int | None = None
    ) -> str:
        node_id = str(self._next_node_id)
        self._next_node_id += 1
        self.node_records[node_id] = _NodeRecord(node_id, parent_id, title, url)
        self.attach_node(node_id, parent_id, index)
        return node_id

    def attach_node(self, node_id: str, parent_id: str, index: int | None) -> None:
        siblings = self.node_records[parent_id].children
        if index is None or index < 0 or index > len(siblings):
            siblings.append(node_id)
        else:
            siblings.insert(index, node_id)
        self.node_records[node_id].parent_id = parent_id

    def detach_node(self, node_id: str) -> None:
        parent_id = self.node_records[node_id].parent_id
        if parent_id is not None:
            self.node_records[parent_id].children.remove(node_id)

    def add_folder(self, parent_id: str, title: str) -> str:
        return self.insert_node(parent_id, title)

    def add_bookmark(self, parent_id: str, title: str, url: str) -> str:
        return self.insert_node(parent_id, title, url)

    def add_workspace(self, name: str) -> str:
        return self.add_folder(BOOKMARKS_BAR_ID, name)

    def node_model(self, node_id: str, *, deep: bool) -> BookmarkNode:
        record = self.node_records[node_id]
        parent = self.node_records.get(record.parent_id) if record.parent_id else None
        children = None
        if record.url is None and deep:
            children = [self.node_model(child, deep=True) for child in record.children]
        return BookmarkNode(
            id=record.id,
            parent_id=record.parent_id,
            index=parent.children.index(node_id) if parent is not None else None,
            title=record.title,
            url=record.url,
            children=children,
        )

    def layout(self, node_id: str) -> list[Any]:
        """Children of a folder as ``(title, url)`` or ``(title, [...])`` tuples."""
        described: list[Any] = []
        for child_id in self.node_records[node_id].children:
            child = self.node_records[child_id]
            if child.url is None:
                described.append((child.title, self.layout(child_id)))
            else:
                described.append((child.title, child.url))
        return described

    def pinned_folders(self, node_id: str) -> list[str]:
        return [
            child_id
            for child_id in self.node_records[node_id].children
            if self.node_records[child_id].url is None
            and self.node_records[child_id].title == PINNED_FOLDER_NAME
        ]


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def make_browser() -> type[FakeBrowser]:
    """Factory for tests that need a fresh browser per generated example."""
    return FakeBrowser


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(debounce_ms=10, batch_delay_ms=0, tab_load_timeout_ms=50)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def links(browser: FakeBrowser) -> WindowWorkspaceLinks:
    return WindowWorkspaceLinks(browser)


@pytest.fixture
def orchestrator(
    browser: FakeBrowser, links: WindowWorkspaceLinks, sync_config: SyncConfig, bus: EventBus
) -> SyncOrchestrator:
    return SyncOrchestrator(browser, links, sync_config, bus)


@pytest.fixture
def service(
    browser: FakeBrowser, orchestrator: SyncOrchestrator, links: WindowWorkspaceLinks
) -> WorkspacesService:
    return WorkspacesService(browser, orchestrator, links)


@pytest.fixture
def work_window(browser: FakeBrowser) -> int:
    """A window with one pinned tab, one ungrouped tab and a two-tab blue group."""
    window_id = browser.open_window()
    browser.add_tab(window_id, "https://pinned.example/", "Pinned", pinned=True)
    browser.add_tab(window_id, "https://a.example/", "Alpha")
    work = browser.add_group(window_id, "Work", "blue")
    browser.add_tab(window_id, "https://b.example/", "Beta", group_id=work)
    browser.add_tab(window_id, "https://c.example/", "Gamma", group_id=work)
    return window_id

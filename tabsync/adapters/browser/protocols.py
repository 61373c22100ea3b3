"""Protocol definitions (ports) for the browser platform.

The reconciliation engine never talks to a concrete extension runtime. A
binding implements these protocols; every call is async and may fail
independently of the others.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from tabsync.adapters.browser.models import BookmarkNode, Tab, TabGroup, Window


class TabsApi(Protocol):
    async def query(
        self,
        *,
        window_id: int | None = None,
        group_id: int | None = None,
        pinned: bool | None = None,
    ) -> list[Tab]: ...

    async def get(self, tab_id: int) -> Tab: ...

    async def create(
        self,
        *,
        window_id: int,
        url: str,
        pinned: bool = False,
        active: bool = False,
        index: int | None = None,
    ) -> Tab: ...

    async def update(
        self,
        tab_id: int,
        *,
        pinned: bool | None = None,
        url: str | None = None,
        active: bool | None = None,
    ) -> Tab: ...

    async def remove(self, tab_ids: int | list[int]) -> None: ...

    async def move(
        self, tab_ids: int | list[int], *, index: int, window_id: int | None = None
    ) -> Tab | list[Tab]: ...

    async def group(
        self,
        tab_ids: int | list[int],
        *,
        group_id: int | None = None,
        window_id: int | None = None,
    ) -> int: ...

    async def ungroup(self, tab_ids: int | list[int]) -> None: ...

    async def discard(self, tab_id: int) -> Tab | None: ...


class TabGroupsApi(Protocol):
    async def query(self, *, window_id: int | None = None) -> list[TabGroup]: ...

    async def update(
        self,
        group_id: int,
        *,
        title: str | None = None,
        color: str | None = None,
        collapsed: bool | None = None,
    ) -> TabGroup: ...


class WindowsApi(Protocol):
    async def get_all(self, *, populate: bool = False) -> list[Window]: ...

    async def get(self, window_id: int, *, populate: bool = False) -> Window: ...

    async def create(self, *, focused: bool = True, url: str | None = None) -> Window: ...


class BookmarksApi(Protocol):
    async def get_tree(self) -> list[BookmarkNode]: ...

    async def get_children(self, node_id: str) -> list[BookmarkNode]: ...

    async def get_sub_tree(self, node_id: str) -> list[BookmarkNode]: ...

    async def create(
        self,
        *,
        parent_id: str,
        title: str,
        url: str | None = None,
        index: int | None = None,
    ) -> BookmarkNode: ...

    async def update(
        self, node_id: str, *, title: str | None = None, url: str | None = None
    ) -> BookmarkNode: ...

    async def remove(self, node_id: str) -> None: ...

    async def remove_tree(self, node_id: str) -> None: ...

    async def move(
        self, node_id: str, *, parent_id: str | None = None, index: int | None = None
    ) -> BookmarkNode: ...


class StorageApi(Protocol):
    async def get(self, keys: list[str]) -> dict[str, Any]: ...

    async def set(self, items: dict[str, Any]) -> None: ...


class BrowserApi(Protocol):
    """Everything the engine consumes from the browser platform."""

    @property
    def tabs(self) -> TabsApi: ...

    @property
    def tab_groups(self) -> TabGroupsApi: ...

    @property
    def windows(self) -> WindowsApi: ...

    @property
    def bookmarks(self) -> BookmarksApi: ...

    @property
    def storage(self) -> StorageApi: ...

"""Window id -> workspace id links kept in extension storage."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tabsync.adapters.browser.errors import StorageError
from tabsync.core.async_utils import raise_if_cancelled

if TYPE_CHECKING:
    from tabsync.adapters.browser.protocols import BrowserApi

logger = logging.getLogger(__name__)

LINKS_STORAGE_KEY = "windowWorkspaceMap"


class WindowWorkspaceLinks:
    """Persisted mapping of open windows to the workspaces they sync with.

    A workspace is linked to at most one window; linking it again moves the
    link. Storage failures surface as ``StorageError``.
    """

    def __init__(self, browser: BrowserApi) -> None:
        self._browser = browser

    async def get_map(self) -> dict[int, str]:
        try:
            stored = await self._browser.storage.get([LINKS_STORAGE_KEY])
        except Exception as exc:
            raise_if_cancelled(exc)
            raise StorageError("get", str(exc), LINKS_STORAGE_KEY) from exc

        raw: Any = (stored or {}).get(LINKS_STORAGE_KEY) or {}
        links: dict[int, str] = {}
        if not isinstance(raw, dict):
            logger.warning("window_links_corrupt", extra={"value_type": type(raw).__name__})
            return links
        for window_key, workspace_id in raw.items():
            try:
                links[int(window_key)] = str(workspace_id)
            except (TypeError, ValueError):
                logger.warning("window_link_invalid", extra={"window_key": str(window_key)})
        return links

    async def _save(self, links: dict[int, str]) -> None:
        payload = {str(window_id): workspace_id for window_id, workspace_id in links.items()}
        try:
            await self._browser.storage.set({LINKS_STORAGE_KEY: payload})
        except Exception as exc:
            raise_if_cancelled(exc)
            raise StorageError("set", str(exc), LINKS_STORAGE_KEY) from exc

    async def link(self, window_id: int, workspace_id: str) -> None:
        links = await self.get_map()
        stale = [w for w, ws in links.items() if ws == workspace_id and w != window_id]
        for other_window in stale:
            del links[other_window]
            logger.info(
                "window_link_moved",
                extra={
                    "workspace_id": workspace_id,
                    "from_window": other_window,
                    "to_window": window_id,
                },
            )
        links[window_id] = workspace_id
        await self._save(links)
        logger.info("window_linked", extra={"window_id": window_id, "workspace_id": workspace_id})

    async def unlink(self, window_id: int) -> str | None:
        """Remove the link of ``window_id``; return the workspace it pointed at."""
        links = await self.get_map()
        workspace_id = links.pop(window_id, None)
        if workspace_id is not None:
            await self._save(links)
            logger.info(
                "window_unlinked", extra={"window_id": window_id, "workspace_id": workspace_id}
            )
        return workspace_id

    async def get_workspace_for_window(self, window_id: int) -> str | None:
        return (await self.get_map()).get(window_id)

    async def get_window_for_workspace(self, workspace_id: str) -> int | None:
        links = await self.get_map()
        return next((w for w, ws in links.items() if ws == workspace_id), None)

    async def cleanup(self, bookmarks_bar_id: str) -> int:
        """Drop links to closed windows and to workspaces that no longer exist.

        Returns the number of links removed.
        """
        links = await self.get_map()
        if not links:
            return 0

        windows = await self._browser.windows.get_all()
        open_windows = {window.id for window in windows if window.id is not None}
        children = await self._browser.bookmarks.get_children(bookmarks_bar_id)
        workspaces = {child.id for child in children if child.url is None}

        kept = {
            window_id: workspace_id
            for window_id, workspace_id in links.items()
            if window_id in open_windows and workspace_id in workspaces
        }
        removed = len(links) - len(kept)
        if removed:
            await self._save(kept)
            logger.info("window_links_cleaned", extra={"removed": removed, "remaining": len(kept)})
        return removed

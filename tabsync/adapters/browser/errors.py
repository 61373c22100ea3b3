"""Errors raised by browser bindings.

Bindings are free to raise anything; these classes give the ones that know
what went wrong a shared vocabulary that maps onto the domain taxonomy.
"""

from __future__ import annotations

from tabsync.domain.exceptions import NotFoundError, OperationFailedError


class BrowserApiError(OperationFailedError):
    """The platform rejected a call."""

    def __init__(self, api: str, operation: str, reason: str) -> None:
        super().__init__(
            f"{api}.{operation} failed: {reason}",
            {"api": api, "operation": operation, "reason": reason},
        )
        self.api = api
        self.operation = operation
        self.reason = reason


class TabNotFoundError(NotFoundError):
    def __init__(self, tab_id: int) -> None:
        super().__init__(f"Tab {tab_id} not found", {"tab_id": tab_id})
        self.tab_id = tab_id


class GroupNotFoundError(NotFoundError):
    def __init__(self, group_id: int) -> None:
        super().__init__(f"Tab group {group_id} not found", {"group_id": group_id})
        self.group_id = group_id


class BookmarkNodeNotFoundError(NotFoundError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Bookmark node {node_id} not found", {"node_id": node_id})
        self.node_id = node_id


class StorageError(BrowserApiError):
    def __init__(self, operation: str, reason: str, key: str | None = None) -> None:
        super().__init__("storage", operation, reason)
        self.key = key

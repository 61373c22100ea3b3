"""Domain-specific exceptions.

The reconciliation engine distinguishes three kinds of failure:

* not-found: a referenced tab, group, bookmark, window or workspace no longer
  exists. Expected under concurrent user action.
* operation-failed: the browser platform rejected a create/update/remove/move.
* invalid-data: a raw record is missing required fields and cannot be
  normalized.

Appliers and normalizers catch these per record or per operation; only the
missing workspace/window cases abort a whole pass.
"""


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize domain exception.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainException):
    """Raised when a referenced tab, group, bookmark or window does not exist."""

    pass


class OperationFailedError(DomainException):
    """Raised when the platform rejects a mutation."""

    pass


class InvalidDataError(DomainException):
    """Raised when a raw record cannot be normalized."""

    pass


class WorkspaceNotFoundError(NotFoundError):
    """Raised when the workspace subtree query returns nothing."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__(f"Workspace {workspace_id} not found", {"workspace_id": workspace_id})
        self.workspace_id = workspace_id


class WindowNotFoundError(NotFoundError):
    """Raised when a window disappeared before or during a pass."""

    def __init__(self, window_id: int) -> None:
        super().__init__(f"Window {window_id} not found", {"window_id": window_id})
        self.window_id = window_id


class WorkspaceOperationError(DomainException):
    """Raised when a workspace-level operation (save, rename, delete) fails."""

    def __init__(self, operation: str, reason: str, workspace_id: str | None = None) -> None:
        super().__init__(
            f"{operation} failed: {reason}",
            {"operation": operation, "reason": reason, "workspace_id": workspace_id},
        )
        self.operation = operation
        self.reason = reason
        self.workspace_id = workspace_id


class BookmarkNotFoundError(NotFoundError):
    """Raised when no bookmark for a URL exists in the linked workspace."""

    def __init__(self, url: str, workspace_id: str | None) -> None:
        super().__init__(
            f"Bookmark for {url} not found in workspace {workspace_id or 'none'}",
            {"url": url, "workspace_id": workspace_id},
        )
        self.url = url
        self.workspace_id = workspace_id

"""Operation appliers for the two destinations of a reconciliation pass."""

from tabsync.reconciliation.apply.bookmarks import BookmarksApplier
from tabsync.reconciliation.apply.ordering import OPERATION_PRIORITY, sort_operations
from tabsync.reconciliation.apply.report import ApplyReport
from tabsync.reconciliation.apply.tabs import TabsApplier

__all__ = [
    "OPERATION_PRIORITY",
    "ApplyReport",
    "BookmarksApplier",
    "TabsApplier",
    "sort_operations",
]

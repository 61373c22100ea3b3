"""Reconciliation engine: normalize both sides, diff them, apply the difference."""

from tabsync.reconciliation.differ import diff, diff_states
from tabsync.reconciliation.models import (
    EMPTY_STATE,
    AddGroup,
    AddItem,
    DeleteGroup,
    DeleteItem,
    DiffResult,
    GroupChanges,
    ItemChanges,
    MoveItem,
    NormalizedGroup,
    NormalizedItem,
    NormalizedState,
    Operation,
    UpdateGroup,
    UpdateItem,
    validate_state,
)
from tabsync.reconciliation.normalizer import from_bookmark_tree, from_live_state

__all__ = [
    "EMPTY_STATE",
    "AddGroup",
    "AddItem",
    "DeleteGroup",
    "DeleteItem",
    "DiffResult",
    "GroupChanges",
    "ItemChanges",
    "MoveItem",
    "NormalizedGroup",
    "NormalizedItem",
    "NormalizedState",
    "Operation",
    "UpdateGroup",
    "UpdateItem",
    "diff",
    "diff_states",
    "from_bookmark_tree",
    "from_live_state",
    "validate_state",
]

"""Execution order for a batch of operations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tabsync.reconciliation.models import (
    AddGroup,
    AddItem,
    DeleteGroup,
    DeleteItem,
    MoveItem,
    UpdateGroup,
    UpdateItem,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tabsync.reconciliation.models import Operation

# Containers exist before the items that reference them; deletions run last so
# adds in the same batch can still resolve groups by key.
OPERATION_PRIORITY: dict[type, int] = {
    AddGroup: 0,
    AddItem: 1,
    UpdateGroup: 2,
    UpdateItem: 3,
    MoveItem: 4,
    DeleteItem: 5,
    DeleteGroup: 6,
}


def sort_operations(operations: Iterable[Operation]) -> list[Operation]:
    """Stable sort by operation priority."""
    return sorted(operations, key=lambda operation: OPERATION_PRIORITY[type(operation)])

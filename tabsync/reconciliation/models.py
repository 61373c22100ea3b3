"""Representation-agnostic snapshot of a window or workspace.

Tabs and bookmarks live in disjoint, unstable ID spaces. A ``NormalizedState``
keeps the IDs of whichever side it was built from, while everything that is
compared across sides goes through semantic keys: items by URL, groups by
``(title, color)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, TypedDict

logger = logging.getLogger(__name__)

GroupKey = tuple[str, str]


@dataclass(frozen=True, slots=True)
class NormalizedItem:
    """One browsing entry, either a tab or a bookmark."""

    id: str
    url: str
    title: str
    pinned: bool = False
    renamed: bool = False
    index: int = 0
    group_id: str | None = None


@dataclass(frozen=True, slots=True)
class NormalizedGroup:
    """One tab group or one group folder."""

    id: str
    title: str
    color: str
    collapsed: bool = False
    index: int = 0

    @property
    def key(self) -> GroupKey:
        return (self.title, self.color)


@dataclass(frozen=True, slots=True)
class NormalizedState:
    items: tuple[NormalizedItem, ...] = ()
    groups: tuple[NormalizedGroup, ...] = ()

    def group_by_id(self) -> dict[str, NormalizedGroup]:
        return {group.id: group for group in self.groups}

    def item_by_url(self) -> dict[str, NormalizedItem]:
        """Map URL to item; with duplicate URLs the last item wins."""
        return {item.url: item for item in self.items}

    def group_of(self, item: NormalizedItem) -> NormalizedGroup | None:
        if item.group_id is None:
            return None
        return self.find_group_by_id(item.group_id)

    def pinned_items(self) -> list[NormalizedItem]:
        return [item for item in self.items if item.pinned]

    def ungrouped_items(self) -> list[NormalizedItem]:
        """Items that are neither pinned nor in a group."""
        return [item for item in self.items if not item.pinned and item.group_id is None]

    def items_in_group(self, group_id: str) -> list[NormalizedItem]:
        return [item for item in self.items if item.group_id == group_id]

    def groups_with_items(self) -> list[tuple[NormalizedGroup, list[NormalizedItem]]]:
        return [(group, self.items_in_group(group.id)) for group in self.groups]

    def find_item_by_url(self, url: str) -> NormalizedItem | None:
        return next((item for item in self.items if item.url == url), None)

    def find_item_by_id(self, item_id: str) -> NormalizedItem | None:
        return next((item for item in self.items if item.id == item_id), None)

    def find_group_by_id(self, group_id: str) -> NormalizedGroup | None:
        return next((group for group in self.groups if group.id == group_id), None)

    def stats(self) -> dict[str, Any]:
        """Summary counts, meant for log ``extra`` payloads."""
        pinned = len(self.pinned_items())
        ungrouped = len(self.ungrouped_items())
        return {
            "total_items": len(self.items),
            "pinned_items": pinned,
            "ungrouped_items": ungrouped,
            "grouped_items": len(self.items) - pinned - ungrouped,
            "total_groups": len(self.groups),
        }


EMPTY_STATE = NormalizedState()


def validate_state(state: NormalizedState) -> list[str]:
    """Report items whose ``group_id`` points at no group of the same state.

    Browser events race with reads, so a dangling reference is logged rather
    than raised. Returns one message per violation.
    """
    group_ids = {group.id for group in state.groups}
    problems: list[str] = []
    for item in state.items:
        if item.group_id is not None and item.group_id not in group_ids:
            problem = f"Item {item.id} references non-existent group {item.group_id}"
            problems.append(problem)
            logger.warning(
                "normalized_state_dangling_group",
                extra={"item_id": item.id, "group_id": item.group_id, "url": item.url},
            )
    return problems


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class ItemChanges(TypedDict, total=False):
    """Changed item fields; a key is present only when the field changed."""

    title: str
    renamed: bool
    pinned: bool
    group_id: str | None
    index: int


class GroupChanges(TypedDict, total=False):
    title: str
    color: str
    collapsed: bool
    index: int


@dataclass(frozen=True, slots=True)
class AddItem:
    item: NormalizedItem
    group: NormalizedGroup | None = None


@dataclass(frozen=True, slots=True)
class DeleteItem:
    item_id: str


@dataclass(frozen=True, slots=True)
class UpdateItem:
    """Field changes for an existing target item.

    ``group`` is the source-side group the item should end up in when
    ``changes`` carries ``group_id``; appliers resolve it by key.
    """

    item_id: str
    changes: ItemChanges
    group: NormalizedGroup | None = None


@dataclass(frozen=True, slots=True)
class MoveItem:
    item_id: str
    new_index: int


@dataclass(frozen=True, slots=True)
class AddGroup:
    group: NormalizedGroup


@dataclass(frozen=True, slots=True)
class DeleteGroup:
    group_id: str


@dataclass(frozen=True, slots=True)
class UpdateGroup:
    group_id: str
    changes: GroupChanges


Operation = AddItem | DeleteItem | UpdateItem | MoveItem | AddGroup | DeleteGroup | UpdateGroup

OPERATION_NAMES: dict[type, str] = {
    AddItem: "add_item",
    DeleteItem: "delete_item",
    UpdateItem: "update_item",
    MoveItem: "move_item",
    AddGroup: "add_group",
    DeleteGroup: "delete_group",
    UpdateGroup: "update_group",
}


def operation_name(operation: Operation) -> str:
    return OPERATION_NAMES[type(operation)]


@dataclass(frozen=True, slots=True)
class DiffResult:
    operations: tuple[Operation, ...] = field(default_factory=tuple)

    @property
    def has_changes(self) -> bool:
        return len(self.operations) > 0

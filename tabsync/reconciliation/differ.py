"""Compute the operations that bring a target state in line with a source state.

Items are matched by URL and groups by ``(title, color)``. When a URL occurs
several times, the n-th occurrence in the source matches the n-th occurrence
in the target, so windows with duplicate tabs still diff to nothing against
themselves.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tabsync.reconciliation.models import (
    AddGroup,
    AddItem,
    DeleteGroup,
    DeleteItem,
    DiffResult,
    GroupChanges,
    GroupKey,
    ItemChanges,
    MoveItem,
    NormalizedGroup,
    NormalizedItem,
    NormalizedState,
    Operation,
    UpdateGroup,
    UpdateItem,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_ItemKey = tuple[str, int]


def _ordered(items: Sequence[NormalizedItem]) -> list[NormalizedItem]:
    return sorted(items, key=lambda item: item.index)


def _keyed_items(items: Sequence[NormalizedItem]) -> dict[_ItemKey, tuple[int, NormalizedItem]]:
    """Map ``(url, occurrence)`` to ``(rank, item)`` in index order."""
    seen: dict[str, int] = {}
    keyed: dict[_ItemKey, tuple[int, NormalizedItem]] = {}
    for rank, item in enumerate(_ordered(items)):
        occurrence = seen.get(item.url, 0)
        seen[item.url] = occurrence + 1
        keyed[(item.url, occurrence)] = (rank, item)
    return keyed


def _keyed_groups(groups: Sequence[NormalizedGroup]) -> dict[GroupKey, NormalizedGroup]:
    keyed: dict[GroupKey, NormalizedGroup] = {}
    for group in groups:
        if group.key in keyed:
            logger.debug(
                "differ_duplicate_group_key",
                extra={"group_title": group.title, "color": group.color, "group_id": group.id},
            )
            continue
        keyed[group.key] = group
    return keyed


def _group_key_of(state: NormalizedState, item: NormalizedItem) -> GroupKey | None:
    group = state.group_of(item)
    return group.key if group is not None else None


def _item_changes(
    source: NormalizedState,
    target: NormalizedState,
    source_item: NormalizedItem,
    target_item: NormalizedItem,
    source_rank: int,
    target_rank: int,
) -> ItemChanges:
    changes: ItemChanges = {}

    if source_item.title != target_item.title and not target_item.renamed:
        # First divergence is taken as a deliberate rename and sticks from now on.
        changes["title"] = source_item.title
        changes["renamed"] = True

    if source_item.renamed and not target_item.renamed:
        changes["renamed"] = True

    if source_item.pinned != target_item.pinned:
        changes["pinned"] = source_item.pinned

    if _group_key_of(source, source_item) != _group_key_of(target, target_item):
        source_group = source.group_of(source_item)
        changes["group_id"] = source_group.id if source_group is not None else None

    if source_rank != target_rank:
        changes["index"] = source_rank

    return changes


def _diff_items(source: NormalizedState, target: NormalizedState) -> list[Operation]:
    operations: list[Operation] = []
    source_map = _keyed_items(source.items)
    target_map = _keyed_items(target.items)

    for key, (_, target_item) in target_map.items():
        if key not in source_map:
            operations.append(DeleteItem(item_id=target_item.id))

    for key, (_, source_item) in source_map.items():
        if key not in target_map:
            operations.append(AddItem(item=source_item, group=source.group_of(source_item)))

    for key, (source_rank, source_item) in source_map.items():
        matched = target_map.get(key)
        if matched is None:
            continue
        target_rank, target_item = matched
        changes = _item_changes(source, target, source_item, target_item, source_rank, target_rank)
        if changes:
            operations.append(
                UpdateItem(
                    item_id=target_item.id,
                    changes=changes,
                    group=source.group_of(source_item) if "group_id" in changes else None,
                )
            )

    displaced = [
        MoveItem(item_id=target_map[key][1].id, new_index=source_rank)
        for key, (source_rank, _) in source_map.items()
        if key in target_map and target_map[key][0] != source_rank
    ]
    operations.extend(displaced)
    return operations


def _diff_groups(source: NormalizedState, target: NormalizedState) -> list[Operation]:
    operations: list[Operation] = []
    source_map = _keyed_groups(source.groups)
    target_map = _keyed_groups(target.groups)

    for key, target_group in target_map.items():
        if key not in source_map:
            operations.append(DeleteGroup(group_id=target_group.id))

    for key, source_group in source_map.items():
        if key not in target_map:
            operations.append(AddGroup(group=source_group))

    for key, source_group in source_map.items():
        target_group = target_map.get(key)
        if target_group is None:
            continue
        # Title and color form the key; only these two can differ.
        changes: GroupChanges = {}
        if source_group.collapsed != target_group.collapsed:
            changes["collapsed"] = source_group.collapsed
        if source_group.index != target_group.index:
            changes["index"] = source_group.index
        if changes:
            operations.append(UpdateGroup(group_id=target_group.id, changes=changes))

    return operations


def diff_states(source: NormalizedState, target: NormalizedState) -> DiffResult:
    """Diff ``target`` against the authoritative ``source``.

    Item operations come first, then group operations. Appliers re-sort by
    operation priority before executing.
    """
    operations = tuple(_diff_items(source, target) + _diff_groups(source, target))
    if operations:
        logger.debug(
            "diff_computed",
            extra={
                "operations": len(operations),
                "source_items": len(source.items),
                "target_items": len(target.items),
            },
        )
    return DiffResult(operations=operations)


def diff(source: NormalizedState, target: NormalizedState) -> list[Operation]:
    return list(diff_states(source, target).operations)

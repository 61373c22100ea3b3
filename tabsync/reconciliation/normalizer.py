"""Project live tabs and bookmark trees into ``NormalizedState``.

Both directions are tolerant: a record that fails validation is dropped with
a warning and the rest of the snapshot is still produced.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from tabsync.adapters.browser.models import BookmarkNode, Tab, TabGroup
from tabsync.reconciliation.metadata import (
    decode_bookmark_title,
    decode_group_folder_title,
    group_key_title,
    is_pinned_folder,
    normalize_color,
)
from tabsync.reconciliation.models import (
    GroupKey,
    NormalizedGroup,
    NormalizedItem,
    NormalizedState,
    validate_state,
)

logger = logging.getLogger(__name__)

UNTITLED_TAB = "Untitled"


def _coerce_tab(raw: Any) -> Tab | None:
    if isinstance(raw, Tab):
        return raw
    try:
        return Tab.model_validate(raw)
    except ValidationError as exc:
        logger.warning("normalizer_invalid_tab", extra={"error": str(exc)})
        return None


def _coerce_group(raw: Any) -> TabGroup | None:
    if isinstance(raw, TabGroup):
        return raw
    try:
        return TabGroup.model_validate(raw)
    except ValidationError as exc:
        logger.warning("normalizer_invalid_tab_group", extra={"error": str(exc)})
        return None


def _coerce_node(raw: Any, levels: int) -> BookmarkNode | None:
    """Validate one bookmark node and, ``levels`` deep, each child on its own.

    A malformed child is dropped without losing its valid siblings.
    """
    if isinstance(raw, BookmarkNode):
        return raw
    if not isinstance(raw, Mapping):
        logger.warning("normalizer_invalid_bookmark", extra={"error": f"unexpected {type(raw)}"})
        return None

    raw_children = raw.get("children")
    try:
        node = BookmarkNode.model_validate({**raw, "children": None})
    except ValidationError as exc:
        logger.warning("normalizer_invalid_bookmark", extra={"error": str(exc)})
        return None

    if raw_children is None:
        return node
    children: list[BookmarkNode] = []
    if levels > 0:
        for raw_child in raw_children:
            child = _coerce_node(raw_child, levels - 1)
            if child is not None:
                children.append(child)
    return node.model_copy(update={"children": children})


def from_live_state(tabs: Iterable[Any], groups: Iterable[Any]) -> NormalizedState:
    """Normalize the tabs and tab groups of one window.

    Tab groups sharing ``(title, color)`` are merged: the first one reported is
    kept and the members of the others are re-pointed at it. Groups are
    indexed in the order their first tab appears; groups without tabs follow.
    """
    valid_tabs = [tab for tab in (_coerce_tab(raw) for raw in tabs) if tab is not None]
    valid_groups = [group for group in (_coerce_group(raw) for raw in groups) if group is not None]

    buckets: dict[GroupKey, list[TabGroup]] = {}
    for group in valid_groups:
        key = (group_key_title(group.title), normalize_color(group.color))
        buckets.setdefault(key, []).append(group)

    # Original tab group id -> id of the representative group.
    group_id_mapping: dict[int, str] = {}
    representatives: list[tuple[GroupKey, TabGroup]] = []
    for key, duplicates in buckets.items():
        representative = duplicates[0]
        representatives.append((key, representative))
        for group in duplicates:
            group_id_mapping[group.id] = str(representative.id)
        if len(duplicates) > 1:
            logger.info(
                "normalizer_merged_duplicate_groups",
                extra={
                    "group_title": representative.title,
                    "color": key[1],
                    "count": len(duplicates),
                    "kept_group_id": representative.id,
                },
            )

    first_tab_index: dict[str, int] = {}
    for tab in valid_tabs:
        if tab.is_grouped and tab.group_id in group_id_mapping:
            merged_id = group_id_mapping[tab.group_id]
            current = first_tab_index.get(merged_id)
            if current is None or tab.index < current:
                first_tab_index[merged_id] = tab.index

    ordered = sorted(
        enumerate(representatives),
        key=lambda entry: (
            first_tab_index.get(str(entry[1][1].id), float("inf")),
            entry[0],
        ),
    )
    normalized_groups = tuple(
        NormalizedGroup(
            id=str(group.id),
            title=key[0],
            color=key[1],
            collapsed=group.collapsed,
            index=position,
        )
        for position, (_, (key, group)) in enumerate(ordered)
    )

    staged: list[tuple[int, NormalizedItem]] = []
    skipped = 0
    for tab in valid_tabs:
        if tab.id is None or not tab.url:
            skipped += 1
            continue
        group_id: str | None = None
        if tab.is_grouped:
            group_id = group_id_mapping.get(tab.group_id, str(tab.group_id))
        staged.append(
            (
                tab.index,
                NormalizedItem(
                    id=str(tab.id),
                    url=tab.url,
                    title=tab.title or UNTITLED_TAB,
                    pinned=tab.pinned,
                    renamed=False,
                    index=tab.index,
                    group_id=group_id,
                ),
            )
        )

    staged.sort(key=lambda entry: entry[0])
    items = tuple(
        NormalizedItem(
            id=item.id,
            url=item.url,
            title=item.title,
            pinned=item.pinned,
            renamed=item.renamed,
            index=rank,
            group_id=item.group_id,
        )
        for rank, (_, item) in enumerate(staged)
    )

    if skipped:
        logger.debug("normalizer_skipped_tabs", extra={"count": skipped})

    state = NormalizedState(items=items, groups=normalized_groups)
    validate_state(state)
    return state


def from_bookmark_tree(root: Any, renamed_urls: Iterable[str] = ()) -> NormalizedState:
    """Normalize a workspace folder.

    Direct bookmarks are ungrouped items, the ``[pinned]`` folder holds pinned
    items, and every other folder is a tab group whose bookmarks are its
    members. Folders nested deeper than that are ignored.
    """
    node = _coerce_node(root, levels=2)
    if node is None or not node.children:
        return NormalizedState()

    renamed = frozenset(renamed_urls)
    items: list[NormalizedItem] = []
    groups: list[NormalizedGroup] = []

    def add_item(bookmark: BookmarkNode, *, pinned: bool | None, group_id: str | None) -> None:
        if not bookmark.url:
            return
        meta = decode_bookmark_title(bookmark.title, renamed=bookmark.url in renamed)
        items.append(
            NormalizedItem(
                id=bookmark.id,
                url=bookmark.url,
                title=meta.title,
                pinned=meta.pinned if pinned is None else pinned,
                renamed=meta.renamed,
                index=len(items),
                group_id=group_id,
            )
        )

    for child in node.children:
        if child.url:
            add_item(child, pinned=None, group_id=None)
            continue

        if is_pinned_folder(child.title):
            for bookmark in child.children or ():
                if bookmark.url:
                    add_item(bookmark, pinned=True, group_id=None)
                else:
                    logger.warning(
                        "normalizer_nested_folder_ignored",
                        extra={"folder_id": bookmark.id, "parent_id": child.id},
                    )
            continue

        meta = decode_group_folder_title(child.title)
        groups.append(
            NormalizedGroup(
                id=child.id,
                title=meta.title,
                color=meta.color,
                collapsed=meta.collapsed,
                index=len(groups),
            )
        )
        for bookmark in child.children or ():
            if bookmark.url:
                add_item(bookmark, pinned=None, group_id=child.id)
            else:
                logger.warning(
                    "normalizer_nested_folder_ignored",
                    extra={"folder_id": bookmark.id, "parent_id": child.id},
                )

    state = NormalizedState(items=tuple(items), groups=tuple(groups))
    validate_state(state)
    return state

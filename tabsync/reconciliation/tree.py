"""Iterative, depth-bounded walks over bookmark trees."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tabsync.adapters.browser.models import BookmarkNode
from tabsync.reconciliation.metadata import decode_bookmark_title

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

MAX_TREE_DEPTH = 32


def iter_nodes(
    roots: BookmarkNode | Iterable[BookmarkNode],
    *,
    max_depth: int = MAX_TREE_DEPTH,
) -> Iterator[tuple[BookmarkNode, int]]:
    """Yield ``(node, depth)`` in pre-order, roots at depth 0.

    Uses an explicit stack. Children below ``max_depth`` are not visited; the
    cut is logged once per pruned folder.
    """
    start = [roots] if isinstance(roots, BookmarkNode) else list(roots)
    stack: list[tuple[BookmarkNode, int]] = [(node, 0) for node in reversed(start)]
    while stack:
        node, depth = stack.pop()
        yield node, depth
        if not node.children:
            continue
        if depth + 1 > max_depth:
            logger.warning(
                "bookmark_tree_depth_exceeded",
                extra={"node_id": node.id, "max_depth": max_depth},
            )
            continue
        stack.extend((child, depth + 1) for child in reversed(node.children))


def find_node_by_id(
    roots: BookmarkNode | Iterable[BookmarkNode],
    node_id: str,
    *,
    max_depth: int = MAX_TREE_DEPTH,
) -> BookmarkNode | None:
    for node, _ in iter_nodes(roots, max_depth=max_depth):
        if node.id == node_id:
            return node
    return None


def find_parent_of(
    roots: BookmarkNode | Iterable[BookmarkNode],
    node_id: str,
    *,
    max_depth: int = MAX_TREE_DEPTH,
) -> BookmarkNode | None:
    for node, _ in iter_nodes(roots, max_depth=max_depth):
        if node.children and any(child.id == node_id for child in node.children):
            return node
    return None


def find_bookmark_by_url(
    roots: BookmarkNode | Iterable[BookmarkNode],
    url: str,
    *,
    max_depth: int = MAX_TREE_DEPTH,
) -> BookmarkNode | None:
    """First bookmark (not folder) with ``url`` in pre-order."""
    for node, _ in iter_nodes(roots, max_depth=max_depth):
        if node.url == url:
            return node
    return None


def collect_bookmark_titles(
    roots: BookmarkNode | Iterable[BookmarkNode],
    *,
    max_depth: int = MAX_TREE_DEPTH,
) -> dict[str, str]:
    """Map every bookmark URL under ``roots`` to its title without markers."""
    titles: dict[str, str] = {}
    for node, _ in iter_nodes(roots, max_depth=max_depth):
        if node.url:
            titles[node.url] = decode_bookmark_title(node.title).title
    return titles

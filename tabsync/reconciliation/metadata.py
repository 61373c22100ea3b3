"""Plain-text encoding of tab group and pinned metadata in bookmark titles.

Workspaces persist tab state as ordinary bookmarks, so everything the bookmark
store has no field for is folded into titles:

* group folder: ``"[<color>][collapsed] <title>"`` (``[collapsed]`` only when set)
* pinned bookmark: ``"[pinned] <title>"``
* pinned container: a folder titled exactly ``"[pinned]"``

These formats are read back from existing bookmark trees and must stay stable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class GroupColor(str, Enum):
    """The nine tab group colors the browser supports."""

    GREY = "grey"
    BLUE = "blue"
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    PINK = "pink"
    PURPLE = "purple"
    CYAN = "cyan"
    ORANGE = "orange"


VALID_GROUP_COLORS: tuple[str, ...] = tuple(color.value for color in GroupColor)
DEFAULT_GROUP_COLOR = GroupColor.GREY.value

UNNAMED_GROUP_TITLE = "Unnamed Group"
COLLAPSED_MARKER = "[collapsed]"
PINNED_PREFIX = "[pinned] "
PINNED_FOLDER_NAME = "[pinned]"

_LEADING_TOKEN_RE = re.compile(r"^\[(.*?)\]")


@dataclass(frozen=True, slots=True)
class GroupMetadata:
    title: str
    color: str
    collapsed: bool


@dataclass(frozen=True, slots=True)
class BookmarkMetadata:
    title: str
    pinned: bool
    renamed: bool = False


def normalize_color(color: str | None) -> str:
    """Return ``color`` when it is one of the nine known colors, else grey."""
    if isinstance(color, GroupColor):
        return color.value
    if color in VALID_GROUP_COLORS:
        return color
    return DEFAULT_GROUP_COLOR


def group_key_title(title: str | None) -> str:
    """Title used to match groups; untitled groups share ``UNNAMED_GROUP_TITLE``."""
    return title or UNNAMED_GROUP_TITLE


def browser_group_title(title: str) -> str:
    # Chrome shows untitled groups as a bare color chip.
    return "" if title == UNNAMED_GROUP_TITLE else title


def encode_group_folder_title(title: str | None, color: str | None, collapsed: bool) -> str:
    """Build a group folder title.

    Example:
        >>> encode_group_folder_title("Development", "blue", True)
        '[blue][collapsed] Development'
    """
    marker = COLLAPSED_MARKER if collapsed else ""
    return f"[{normalize_color(color)}]{marker} {group_key_title(title)}"


def decode_group_folder_title(text: str | None) -> GroupMetadata:
    """Parse a group folder title; never fails.

    The leading bracket token is the color (grey when missing or unknown) and a
    ``[collapsed]`` token anywhere marks the group collapsed.
    An empty title reads back as ``UNNAMED_GROUP_TITLE``.
    """
    raw = text or ""
    collapsed = COLLAPSED_MARKER in raw

    match = _LEADING_TOKEN_RE.match(raw)
    color = normalize_color(match.group(1) if match else None)

    title = _LEADING_TOKEN_RE.sub("", raw, count=1).replace(COLLAPSED_MARKER, "", 1).strip()
    return GroupMetadata(title=group_key_title(title), color=color, collapsed=collapsed)


def encode_bookmark_title(title: str | None, pinned: bool, renamed: bool = False) -> str:
    """Build a bookmark title for a tab.

    ``renamed`` is accepted for symmetry with the decoder but is not written into
    the text: a renamed title is stored as-is and tracked by the sync state.
    """
    clean = title or ""
    return f"{PINNED_PREFIX}{clean}" if pinned else clean


def decode_bookmark_title(text: str | None, renamed: bool = False) -> BookmarkMetadata:
    """Strip the pinned prefix from a bookmark title.

    ``renamed`` cannot be derived from the text; callers pass what they know.
    """
    raw = text or ""
    if raw.startswith(PINNED_PREFIX):
        return BookmarkMetadata(title=raw[len(PINNED_PREFIX) :], pinned=True, renamed=renamed)
    if raw == PINNED_FOLDER_NAME:
        return BookmarkMetadata(title="", pinned=True, renamed=renamed)
    return BookmarkMetadata(title=raw, pinned=False, renamed=renamed)


def is_pinned_folder(title: str | None) -> bool:
    return title == PINNED_FOLDER_NAME

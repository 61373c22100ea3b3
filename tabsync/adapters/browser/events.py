"""Browser events published by the binding onto the engine's event bus."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, kw_only=True)
class BrowserEvent:
    """Base class for all browser events."""

    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True, kw_only=True)
class TabCreated(BrowserEvent):
    tab_id: int
    window_id: int


@dataclass(frozen=True, kw_only=True)
class TabUpdated(BrowserEvent):
    """A tab changed; ``title``/``status`` mirror the platform's change info."""

    tab_id: int
    window_id: int | None = None
    title: str | None = None
    status: str | None = None
    url: str | None = None

    @property
    def has_metadata(self) -> bool:
        return bool(self.title) or self.status == "complete"


@dataclass(frozen=True, kw_only=True)
class TabRemoved(BrowserEvent):
    tab_id: int
    window_id: int
    is_window_closing: bool = False


@dataclass(frozen=True, kw_only=True)
class TabMoved(BrowserEvent):
    tab_id: int
    window_id: int


@dataclass(frozen=True, kw_only=True)
class TabAttached(BrowserEvent):
    tab_id: int
    window_id: int


@dataclass(frozen=True, kw_only=True)
class TabDetached(BrowserEvent):
    tab_id: int
    window_id: int


@dataclass(frozen=True, kw_only=True)
class TabGroupUpdated(BrowserEvent):
    group_id: int
    window_id: int


@dataclass(frozen=True, kw_only=True)
class WindowRemoved(BrowserEvent):
    window_id: int


@dataclass(frozen=True, kw_only=True)
class BookmarkChanged(BrowserEvent):
    bookmark_id: str

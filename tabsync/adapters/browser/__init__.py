"""Browser platform contract consumed by the sync engine."""

from tabsync.adapters.browser.guard import guarded
from tabsync.adapters.browser.models import BookmarkNode, Tab, TabGroup, Window
from tabsync.adapters.browser.protocols import BrowserApi

__all__ = ["BookmarkNode", "BrowserApi", "Tab", "TabGroup", "Window", "guarded"]

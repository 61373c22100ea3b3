"""Async helper utilities."""

from __future__ import annotations

import asyncio


def raise_if_cancelled(exc: BaseException) -> None:
    """Re-raise ``asyncio.CancelledError`` instances to preserve cancellation semantics."""

    if isinstance(exc, asyncio.CancelledError):  # pragma: no cover - simple guard
        raise exc


def cancel_handle(handle: asyncio.TimerHandle | asyncio.Task | None) -> bool:
    """Cancel a pending timer or task; return True when something was cancelled."""
    if handle is None:
        return False
    if isinstance(handle, asyncio.Task) and handle.done():
        return False
    if isinstance(handle, asyncio.TimerHandle) and handle.cancelled():
        return False
    handle.cancel()
    return True

"""Safe-default wrapper for individual browser calls."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def guarded(
    call: Awaitable[T],
    *,
    default: T,
    operation: str,
    level: int = logging.WARNING,
    **context: Any,
) -> T:
    """Await ``call`` and return ``default`` if it raises.

    The failure is logged under ``browser_call_failed`` with ``operation`` and
    any extra ``context``. ``asyncio.CancelledError`` is not an ``Exception``
    and therefore always propagates.
    """
    try:
        return await call
    except Exception as exc:
        logger.log(
            level,
            "browser_call_failed",
            extra={
                "operation": operation,
                "error": str(exc),
                "error_type": type(exc).__name__,
                **context,
            },
        )
        return default

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, TypeVar

from contract_ide.core.exceptions import TimeoutError as HostTimeoutError

T = TypeVar("T")

Listener = Callable[..., Any]
"""A callback that may be a plain function or a coroutine function."""


async def maybe_await(callback: Listener, *args: Any) -> Any:
    """Call *callback* with *args*, awaiting the result when it is awaitable.

    Lets callers register either ``def`` or ``async def`` listeners.
    """
    result = callback(*args)
    if inspect.isawaitable(result):
        return await result
    return result


async def with_timeout(awaitable: Awaitable[T], seconds: float, what: str) -> T:
    """Await *awaitable* with a deadline.

    Args:
        awaitable: The coroutine or future to wait for.
        seconds: Maximum number of seconds to wait.
        what: Short description used in the error message.

    Raises:
        TimeoutError: (the host's own) if *awaitable* does not finish in time.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise HostTimeoutError(
            f"Timed out after {seconds:g}s waiting for {what}",
            code="ERR_TIMEOUT",
            details={"seconds": seconds},
        ) from exc

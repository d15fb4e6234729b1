"""Cooperative polling loop used to wait on the backend."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from stackur.utils.errors import ErrorContext, OperationCancelledError, PollingTimeoutError
from stackur.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


async def _wait(interval: float, cancel: Optional[asyncio.Event]) -> None:
    """Sleep for one interval, returning early if cancellation is requested."""
    if cancel is None:
        await asyncio.sleep(interval)
        return

    try:
        await asyncio.wait_for(cancel.wait(), timeout=interval)
    except asyncio.TimeoutError:
        pass


async def poll_until(
    check: Callable[[], Awaitable[Optional[T]]],
    interval: float,
    description: str,
    timeout: Optional[float] = None,
    cancel: Optional[asyncio.Event] = None,
    context: Optional[ErrorContext] = None
) -> T:
    """Sleep-then-check until ``check`` returns something other than None.

    Args:
        check: Coroutine function probing the backend once
        interval: Seconds to sleep before each probe
        description: What is being waited on, used in log and error messages
        timeout: Optional watchdog in seconds
        cancel: Optional cancellation token
        context: Error context attached to timeout/cancel errors

    Returns:
        The first non-None value produced by ``check``

    Raises:
        PollingTimeoutError: If the watchdog elapses first
        OperationCancelledError: If the cancellation token is set
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout is not None else None
    ticks = 0

    while True:
        await _wait(interval, cancel)

        if cancel is not None and cancel.is_set():
            raise OperationCancelledError(f"Cancelled while waiting for {description}", context=context)

        ticks += 1
        result = await check()
        if result is not None:
            logger.debug(f"Finished waiting for {description} after {ticks} poll(s)")
            return result

        if deadline is not None and loop.time() >= deadline:
            raise PollingTimeoutError(
                f"Timed out after {timeout:.0f}s waiting for {description}",
                context=context
            )

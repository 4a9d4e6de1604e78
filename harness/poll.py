"""Fixed-interval polling for eventually consistent external state."""

import asyncio
import inspect
import time
from typing import Awaitable, Callable, TypeVar, Union

from .errors import PollTimeoutError

T = TypeVar("T")

DEFAULT_INTERVAL_MS = 10_000
DEFAULT_TIMEOUT_MS = 300_000


async def poll_until(
    fn: Callable[[], Union[T, Awaitable[T]]],
    predicate: Callable[[T], bool],
    *,
    interval_ms: int = DEFAULT_INTERVAL_MS,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    label: str = "condition",
) -> T:
    """Call ``fn`` until ``predicate`` accepts its result.

    Args:
        fn: Observation function, sync or async
        predicate: Receives the full observation
        interval_ms: Sleep between observations
        timeout_ms: Deadline measured from the first call
        label: Names the wait in the timeout message

    Returns:
        The first observation that satisfies the predicate

    Raises:
        PollTimeoutError: if the deadline passes first
    """
    deadline = time.monotonic() + timeout_ms / 1000

    while time.monotonic() < deadline:
        result = fn()
        if inspect.isawaitable(result):
            result = await result
        if predicate(result):
            return result
        await asyncio.sleep(interval_ms / 1000)

    raise PollTimeoutError(label, timeout_ms)


def wait_until(
    fn: Callable[[], Union[T, Awaitable[T]]],
    predicate: Callable[[T], bool],
    *,
    interval_ms: int = DEFAULT_INTERVAL_MS,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    label: str = "condition",
) -> T:
    """Blocking form of :func:`poll_until` for synchronous callers."""
    return asyncio.run(poll_until(fn, predicate, interval_ms=interval_ms,
                                  timeout_ms=timeout_ms, label=label))

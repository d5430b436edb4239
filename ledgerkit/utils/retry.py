"""
Async retry with exponential backoff and jitter.

Two of the AWS Architecture Blog strategies are available:
- full jitter  : sleep U(0, cap)
- equal jitter : sleep cap/2 + U(0, cap/2)

where `cap = min(base * 2**(attempt-1), max_delay)`.

Example
-------
    from ledgerkit.utils.retry import aretry_call

    result = await aretry_call(flaky, retries=3, base=0.2, retry_if=is_transient)
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import (Any, Awaitable, Callable, Literal, Optional, Sequence,
                    Tuple, Type, TypeVar, Union)

__all__ = ["RetryError", "backoff_delay", "aretry_call"]

log = logging.getLogger(__name__)

T = TypeVar("T")

JitterMode = Literal["full", "equal"]


class RetryError(RuntimeError):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, last_exception: BaseException, attempts: int) -> None:
        super().__init__(f"exhausted after {attempts} attempts: {last_exception!r}")
        self.last_exception = last_exception
        self.attempts = attempts


def backoff_delay(
    attempt: int,
    *,
    base: float,
    max_delay: float,
    jitter: JitterMode = "full",
) -> float:
    """Delay in seconds before retry number `attempt` (1-based)."""
    attempt = max(attempt, 1)
    cap = min(base * (2 ** (attempt - 1)), max_delay)
    if jitter == "full":
        delay = random.uniform(0.0, cap)
    elif jitter == "equal":
        delay = (cap * 0.5) + random.uniform(0.0, cap * 0.5)
    else:
        raise ValueError(f"unknown jitter mode: {jitter}")
    return max(0.0, float(delay))


async def aretry_call(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    retries: int = 3,
    base: float = 0.15,
    max_delay: float = 3.0,
    jitter: JitterMode = "full",
    exceptions: Union[Type[BaseException], Sequence[Type[BaseException]]] = Exception,
    retry_if: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    **kwargs: Any,
) -> T:
    """
    Await `fn(*args, **kwargs)`, retrying up to `retries` times.

    Only exceptions matching `exceptions` (and `retry_if`, when given) are
    retried; anything else propagates immediately. When attempts run out a
    `RetryError` chained to the last failure is raised.
    """
    if isinstance(exceptions, type):
        exc_types: Tuple[Type[BaseException], ...] = (exceptions,)
    else:
        exc_types = tuple(exceptions)

    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn(*args, **kwargs)
        except exc_types as exc:
            if retry_if is not None and not retry_if(exc):
                raise
            if attempt > retries:
                raise RetryError(exc, attempts=attempt) from exc

            sleep_s = backoff_delay(attempt, base=base, max_delay=max_delay, jitter=jitter)
            log.debug("retrying after %r (attempt %d/%d, sleep %.3fs)", exc, attempt, retries, sleep_s)
            if on_retry is not None:
                on_retry(attempt, exc, sleep_s)
            await asyncio.sleep(sleep_s)

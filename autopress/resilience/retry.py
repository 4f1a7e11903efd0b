"""Retry helpers with exponential backoff."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
BASE_DELAY = 1.0
MAX_DELAY = 5.0


def backoff_delay(attempt: int, base_delay: float = BASE_DELAY, max_delay: float = MAX_DELAY) -> float:
    """Delay before retry number ``attempt`` (0-based)."""
    return min(base_delay * (2 ** attempt), max_delay)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    max_delay: float = MAX_DELAY,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "call",
) -> T:
    """Await ``func()`` up to ``max_retries`` times.

    The last exception is re-raised once attempts run out, or immediately when
    ``should_retry`` rejects it.
    """
    attempts = max(1, max_retries)
    for attempt in range(attempts):
        try:
            return await func()
        except retry_on as exc:
            if should_retry is not None and not should_retry(exc):
                raise
            if attempt == attempts - 1:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                label, attempt + 1, attempts, exc, delay,
            )
            await sleep(delay)
    raise RuntimeError("unreachable")

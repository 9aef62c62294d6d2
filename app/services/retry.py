# app/services/retry.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    delay_seconds: float,
    retry_on: Tuple[Type[BaseException], ...],
    label: str,
) -> T:
    """
    Run `operation` until it succeeds or `attempts` runs out.

    Only exceptions listed in `retry_on` are retried; the delay grows
    linearly with the attempt number. The last failure is re-raised.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as exc:
            if attempt == attempts:
                raise
            wait = delay_seconds * attempt
            logger.warning(
                "%s failed (attempt %s/%s): %s; retrying in %.2fs",
                label,
                attempt,
                attempts,
                exc,
                wait,
            )
            await asyncio.sleep(wait)
    raise AssertionError("unreachable")

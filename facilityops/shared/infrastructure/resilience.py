"""
Bounded waits and retries for store and channel calls.

Every call that can suspend (store adapter, real-time channel) goes through
`bounded()` so a slow upstream fails fast as a retryable error instead of
hanging the caller.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from facilityops.config import settings
from facilityops.core import UpstreamUnavailableException
from facilityops.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


async def bounded(
    awaitable: Awaitable[T],
    operation: str,
    timeout: Optional[float] = None,
    service_name: str = "Store",
) -> T:
    """Await with a deadline, translating a timeout into UpstreamUnavailable."""
    limit = timeout if timeout is not None else settings.store_timeout_seconds
    try:
        return await asyncio.wait_for(awaitable, timeout=limit)
    except asyncio.TimeoutError as exc:
        logger.warning(
            "Upstream call timed out",
            extra={"operation": operation, "timeout_seconds": limit}
        )
        raise UpstreamUnavailableException(
            service_name,
            f"{operation} timed out, please retry",
            {"operation": operation}
        ) from exc


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    operation: str,
    max_retries: int = 3,
    base_delay: float = 0.5,
) -> T:
    """
    Retry a call that raised a retryable error, doubling the delay each time.

    Non-retryable application errors propagate on the first attempt.
    """
    for attempt in range(max_retries):
        try:
            return await func()
        except UpstreamUnavailableException:
            if attempt == max_retries - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.info(
                "Retrying upstream call",
                extra={"operation": operation, "attempt": attempt + 1, "delay_seconds": delay}
            )
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")

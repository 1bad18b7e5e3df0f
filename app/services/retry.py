import asyncio
from typing import Awaitable, Callable, TypeVar

import httpx
from structlog import get_logger

T = TypeVar("T")
logger = get_logger()


def is_retryable_error(error: BaseException) -> bool:
    """Transport failures, throttling and upstream 5xx are worth another attempt."""
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    status = getattr(error, "code", None) or getattr(error, "status_code", None) or getattr(error, "status", None)
    if isinstance(status, int) and (status == 429 or 500 <= status < 600):
        return True
    return "rate limit" in str(error).lower()


async def retry_async_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    retries: int = 2,
    base_delay: float = 1.0,
    factor: float = 2.0,
    should_retry: Callable[[BaseException], bool] = is_retryable_error,
) -> T:
    """Await ``fn`` and retry up to ``retries`` extra times on retryable errors.

    The delay before retry ``n`` (0-based) is ``base_delay * factor ** n``.
    The last error is re-raised once retries are exhausted or when
    ``should_retry`` rejects it.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            logger.warning("Attempt failed", attempt=attempt + 1, error=str(e))
            if attempt >= retries or not should_retry(e):
                raise
            await asyncio.sleep(base_delay * (factor ** attempt))
            attempt += 1

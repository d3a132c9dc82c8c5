"""Retry helper for calls to external services."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def async_retry(
    max_attempts: int = 3,
    backoff_base: float = 2.0,
    backoff_max: float = 60.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[Exception, int], None] | None = None,
):
    """Retry an async function with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        backoff_base: Base for exponential backoff (seconds)
        backoff_max: Maximum backoff time (seconds)
        exceptions: Exception types that trigger a retry
        on_retry: Optional callback invoked with (error, attempt) before sleeping

    Returns:
        Decorated function. The last exception is re-raised once attempts run out.

    Example:
        @async_retry(max_attempts=3, exceptions=(httpx.HTTPError,))
        async def list_releases(client: httpx.AsyncClient, url: str):
            response = await client.get(url)
            response.raise_for_status()
            return response.json()
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_attempts:
                        logger.error(
                            f"{func.__name__} failed after {max_attempts} attempts: {e}"
                        )
                        raise

                    backoff = min(backoff_base ** (attempt - 1), backoff_max)
                    logger.warning(
                        f"{func.__name__} attempt {attempt}/{max_attempts} failed: {e}. "
                        f"Retrying in {backoff:.1f}s..."
                    )

                    if on_retry:
                        on_retry(e, attempt)

                    await asyncio.sleep(backoff)
                    attempt += 1

        return wrapper

    return decorator

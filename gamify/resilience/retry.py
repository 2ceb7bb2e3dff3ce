"""Retry logic for optimistic-concurrency conflicts

Versioned writes (streaks, challenge progress) raise ConcurrencyError when
another writer saved first. The whole load-mutate-save function is retried
with exponential backoff and jitter; any other error propagates at once.
"""

import asyncio
import random
import logging
from typing import Awaitable, Callable, Any, TypeVar

from gamify import config
from gamify.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)

T = TypeVar('T')

BASE_DELAY = 0.01  # seconds
MAX_DELAY = 0.5  # seconds
JITTER = 0.1  # 10% random jitter


def is_retryable_error(exc: Exception) -> bool:
    """Only lost optimistic races are retried"""
    return isinstance(exc, ConcurrencyError)


def calculate_backoff(attempt: int) -> float:
    """
    Exponential backoff delay with jitter.

    Formula: delay = min(BASE_DELAY * (2 ** attempt), MAX_DELAY) +/- 10%

    Args:
        attempt: The retry attempt number (0-indexed)

    Returns:
        Delay in seconds
    """
    delay = min(BASE_DELAY * (2 ** attempt), MAX_DELAY)
    jitter_amount = random.uniform(-JITTER * delay, JITTER * delay)
    return max(delay + jitter_amount, 0.0)


async def retry_on_conflict(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = None,
    **kwargs: Any
) -> T:
    """
    Run func, re-running it from scratch after a ConcurrencyError.

    Args:
        func: Async function performing a full load-mutate-save
        max_retries: Maximum number of retry attempts (default: CONFLICT_MAX_RETRIES)

    Raises:
        The last ConcurrencyError once retries are exhausted, or any
        non-retryable error immediately
    """
    if max_retries is None:
        max_retries = config.CONFLICT_MAX_RETRIES

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable_error(e):
                raise

            if attempt == max_retries:
                logger.error(
                    f"[RETRY] All {max_retries} conflict retries exhausted for {func.__name__}"
                )
                raise

            from gamify.monitoring.prometheus_metrics import track_conflict
            track_conflict(getattr(e, "record_type", None) or "unknown")

            backoff = calculate_backoff(attempt)
            logger.warning(
                f"[RETRY] Conflict in {func.__name__}, attempt {attempt + 1}/{max_retries} "
                f"after {backoff:.3f}s"
            )
            await asyncio.sleep(backoff)

    raise RuntimeError("retry_on_conflict exited without result")

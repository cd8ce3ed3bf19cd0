"""Retry logic with exponential backoff and jitter

Implements the retry loop used for optimistic avatar writes:
1. Only retries transient errors (write conflicts, lost connections)
2. Uses exponential backoff with jitter so colliding writers spread out
3. Gives up after max retries to avoid infinite loops
"""

import asyncio
import random
import logging
from typing import Awaitable, Callable, Any, TypeVar

from progression.exceptions import WriteConflict

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Retry configuration
MAX_RETRIES = 3
BASE_DELAY = 0.01  # seconds
MAX_DELAY = 0.5  # seconds
JITTER = 0.1  # 10% random jitter


def is_retryable_error(exc: Exception) -> bool:
    """
    Determine if error is transient and should be retried.

    Retryable errors:
    - WriteConflict (another writer bumped the avatar version)
    - Connection-level database failures

    Non-retryable errors:
    - Validation errors raised inside the mutation
    - Anything else unknown
    """
    if isinstance(exc, WriteConflict):
        return True

    # psycopg / psycopg_pool connection errors (checked by class name to avoid import)
    exc_class_name = exc.__class__.__name__
    if exc_class_name in ['OperationalError', 'PoolTimeout', 'SerializationFailure']:
        return True

    return False


def calculate_backoff(attempt: int, base_delay: float = BASE_DELAY, max_delay: float = MAX_DELAY) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Formula: delay = min(base_delay * (2 ** attempt), max_delay) + jitter
    Jitter is random value between -10% and +10% of delay

    Example (defaults):
        Attempt 0: ~10ms
        Attempt 1: ~20ms
        Attempt 2: ~40ms
    """
    delay = min(base_delay * (2 ** attempt), max_delay)

    jitter_amount = random.uniform(-JITTER * delay, JITTER * delay)
    final_delay = delay + jitter_amount

    return max(final_delay, 0.0)


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    **kwargs: Any
) -> T:
    """
    Retry async function with exponential backoff.

    Only retries transient errors. Gives up after max_retries attempts and
    re-raises the last exception.

    Example:
        avatar = await retry_with_backoff(self._attempt_update, user_id, mutate, max_retries=5)
    """
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)

        except Exception as e:
            if not is_retryable_error(e):
                raise

            if attempt == max_retries:
                logger.warning(
                    f"[RETRY] All {max_retries} retries exhausted for {func.__name__}"
                )
                raise

            backoff = calculate_backoff(attempt, base_delay=base_delay)

            logger.debug(
                f"[RETRY] Attempt {attempt + 1}/{max_retries} for {func.__name__} "
                f"after {backoff:.3f}s (error: {type(e).__name__})"
            )

            await asyncio.sleep(backoff)

    raise RuntimeError("Retry logic failed unexpectedly")

"""
Retry with exponential backoff for ERP page requests.

A page that still fails after the last attempt is reported to the
paginator, which stops the window and keeps what it already has.
"""
import asyncio
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional

from erp_core.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    exponential_base: float = 2.0
    jitter: float = 0.1  # random jitter factor

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given (1-based) failed attempt."""
        delay = min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay
        )
        return delay + delay * self.jitter * random.random()


NO_RETRY = RetryConfig(max_attempts=1)


async def retry_with_backoff(
    func: Callable[..., Any],
    *args,
    config: Optional[RetryConfig] = None,
    retryable_exceptions: tuple = (Exception,),
    **kwargs
) -> Any:
    """
    Execute an async function with exponential backoff retry.

    Args:
        func: Async function to execute
        *args: Positional arguments for func
        config: Retry configuration
        retryable_exceptions: Exceptions to retry on
        **kwargs: Keyword arguments for func

    Returns:
        Result of func

    Raises:
        Last exception if all retries fail
    """
    config = config or RetryConfig()

    for attempt in range(1, config.max_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as e:
            if attempt == config.max_attempts:
                if config.max_attempts > 1:
                    logger.error(
                        f"All {config.max_attempts} retry attempts failed",
                        extra={"error": str(e)}
                    )
                raise

            delay = config.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt} failed, retrying in {delay:.2f}s",
                extra={"attempt": attempt, "delay": round(delay, 2), "error": str(e)}
            )
            await asyncio.sleep(delay)

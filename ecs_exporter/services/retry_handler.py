"""Retry handler with exponential backoff for transient failures."""

import asyncio
import random
import logging
from typing import Awaitable, Callable, Optional, Tuple, TypeVar


T = TypeVar('T')


class RetryHandler:
    """
    Handles retry logic with exponential backoff and jitter.

    Useful for transient failures like network errors, API throttling,
    and temporary service unavailability.
    """

    @staticmethod
    async def with_retry(
        func: Callable[[], Awaitable[T]],
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exceptions: Tuple[type, ...] = (Exception,),
        should_retry: Optional[Callable[[BaseException], bool]] = None,
        on_attempt: Optional[Callable[[int], None]] = None,
        logger: logging.Logger = None
    ) -> T:
        """
        Execute function with exponential backoff retry.

        Args:
            func: Async callable to execute
            max_attempts: Maximum attempts including the first (default 3)
            base_delay: Initial delay in seconds (default 1.0)
            max_delay: Maximum delay in seconds (default 60.0)
            exceptions: Tuple of exception types to retry on
            should_retry: Optional predicate; an exception it rejects is raised at once
            on_attempt: Optional callback receiving the attempt number before each try
            logger: Optional logger for retry events

        Returns:
            Result from successful function execution

        Raises:
            Exception: Last exception if all retries exhausted, or the first
                exception that is not retryable
        """
        logger = logger or logging.getLogger(__name__)

        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        for attempt in range(1, max_attempts + 1):
            if on_attempt is not None:
                on_attempt(attempt)
            try:
                return await func()

            except exceptions as e:
                if should_retry is not None and not should_retry(e):
                    raise

                if attempt == max_attempts:
                    # Final attempt failed
                    logger.warning(f"All {max_attempts} attempts exhausted: {e}")
                    raise

                # Calculate delay with exponential backoff and jitter
                delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
                jitter = random.uniform(0, delay * 0.1)  # Add 0-10% jitter
                total_delay = delay + jitter

                logger.info(
                    f"Attempt {attempt}/{max_attempts} failed: {e}. "
                    f"Retrying in {total_delay:.2f}s..."
                )

                # Wait before retry
                await asyncio.sleep(total_delay)

        # Should never reach here: the last attempt either returns or raises
        raise RuntimeError("Retry loop exited without a result")

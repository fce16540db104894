"""
Retry helpers for transient backend failures.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger


@dataclass(frozen=True)
class RetryConfig:
    """How many times to try, and how long to wait between tries."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    backoff_strategy: str = "exponential"

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        if self.backoff_strategy == "exponential":
            delay = self.base_delay * self.exponential_base ** (attempt - 1)
        elif self.backoff_strategy == "linear":
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay

        delay = min(delay, self.max_delay)
        if self.jitter and delay:
            delay += random.uniform(-0.1, 0.1) * delay
        return max(0.0, delay)


# Back-to-back attempts with no delay between them.
IMMEDIATE_RETRY = RetryConfig(max_attempts=3, base_delay=0.0, jitter=False, backoff_strategy="fixed")


class RetryError(Exception):
    """Every attempt failed; ``last_exception`` is the final failure."""

    def __init__(self, message: str, last_exception: BaseException, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def retry_on_exception(
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    config: Optional[RetryConfig] = None,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Retry an async callable when it raises one of ``exceptions``.

    Each failed attempt is logged as a warning and exhaustion as an error,
    after which RetryError is raised from the last failure. Exceptions not
    listed propagate immediately.
    """
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        name = func.__name__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            logger = get_logger(f"retry.{name}")
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:
                    if attempt >= config.max_attempts:
                        logger.error("Giving up", function=name, attempts=attempt, error=str(exc))
                        raise RetryError(f"{name} failed after {attempt} attempts", exc, attempt) from exc

                    delay = config.delay_for(attempt)
                    logger.warning(
                        "Attempt failed",
                        function=name,
                        attempt=attempt,
                        max_attempts=config.max_attempts,
                        delay=delay,
                        error=str(exc),
                    )
                    if delay:
                        await asyncio.sleep(delay)

        return wrapper

    return decorator

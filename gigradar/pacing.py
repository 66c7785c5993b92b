"""Request pacing: jittered delays between requests and exponential backoff."""
from __future__ import annotations

import functools
import logging
import random
import time
from typing import Any, Callable, Tuple, Type

logger = logging.getLogger(__name__)


def random_delay_seconds(min_ms: int, max_ms: int) -> float:
    """Uniform jitter in ``[min_ms, max_ms]``, returned in seconds."""
    if max_ms < min_ms:
        min_ms, max_ms = max_ms, min_ms
    return random.randint(min_ms, max_ms) / 1000.0


def backoff_delay(
    attempt: int,
    base_delay: float = 5.0,
    max_delay: float = 120.0,
    jitter: float = 0.2,
) -> float:
    """``base * 2**attempt`` capped at ``max_delay``, plus up to 20% jitter."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    return delay + delay * jitter * random.random()


class Pacer:
    """Sleeps between requests so the crawl never bursts."""

    def __init__(
        self,
        job_delay_ms: tuple[int, int] = (10_000, 20_000),
        page_delay_ms: tuple[int, int] = (3_000, 6_000),
        item_delay_ms: int = 2_000,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.job_delay_ms = job_delay_ms
        self.page_delay_ms = page_delay_ms
        self.item_delay_ms = item_delay_ms
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Any, sleep: Callable[[float], None] = time.sleep) -> "Pacer":
        return cls(
            job_delay_ms=settings.job_delay_ms,
            page_delay_ms=settings.page_delay_ms,
            item_delay_ms=settings.process_delay_ms,
            sleep=sleep,
        )

    def _wait(self, seconds: float, what: str) -> None:
        logger.info("Waiting %.1fs before next %s", seconds, what)
        self._sleep(seconds)

    def job_pause(self) -> None:
        self._wait(random_delay_seconds(*self.job_delay_ms), "posting")

    def page_pause(self) -> None:
        self._wait(random_delay_seconds(*self.page_delay_ms), "page")

    def item_pause(self) -> None:
        if self.item_delay_ms > 0:
            self._sleep(self.item_delay_ms / 1000.0)


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 5.0,
    max_delay: float = 120.0,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable:
    """Decorator: retries the wrapped function with exponential backoff."""

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_attempts):
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    if attempt == max_attempts - 1:
                        logger.error(
                            "%s failed after %d attempts: %s",
                            fn.__qualname__,
                            max_attempts,
                            exc,
                        )
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay)
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        fn.__qualname__,
                        attempt + 1,
                        max_attempts,
                        exc,
                        delay,
                    )
                    time.sleep(delay)
            raise RuntimeError("unreachable")

        return wrapper

    return decorator

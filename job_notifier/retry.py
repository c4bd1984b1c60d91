"""Bounded retry with exponential backoff — stdlib only."""
from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, Tuple, Type

logger = logging.getLogger(__name__)


def backoff_delays(
    max_attempts: int,
    base_delay: float,
    max_delay: float,
    backoff_factor: float = 2.0,
) -> list[float]:
    """Waits between attempts: entry ``n`` follows failed attempt ``n + 1``.

    ``max_attempts`` attempts leave ``max_attempts - 1`` gaps, each
    ``base_delay * backoff_factor ** n`` capped at ``max_delay``.
    """
    return [
        min(base_delay * (backoff_factor ** n), max_delay)
        for n in range(max(max_attempts - 1, 0))
    ]


def call_with_retry(
    fn: Callable[[], Any],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] | None = None,
    label: str | None = None,
) -> Any:
    """Call ``fn`` until it succeeds or ``max_attempts`` is spent.

    The last retryable exception is re-raised once attempts run out.
    """
    name = label or getattr(fn, "__qualname__", repr(fn))
    delays = backoff_delays(max_attempts, base_delay, max_delay)
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn()
        except retryable as exc:
            if attempt >= max_attempts:
                logger.error("%s failed after %d attempts: %s", name, attempt, exc)
                raise
            delay = delays[attempt - 1]
            logger.warning(
                "%s attempt %d/%d failed (%s), retrying in %.1fs",
                name,
                attempt,
                max_attempts,
                exc,
                delay,
            )
            (sleep or time.sleep)(delay)


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable:
    """Decorator: retries the wrapped function with exponential backoff."""

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return call_with_retry(
                lambda: fn(*args, **kwargs),
                max_attempts=max_attempts,
                base_delay=base_delay,
                max_delay=max_delay,
                retryable=retryable,
                label=fn.__qualname__,
            )

        return wrapper

    return decorator

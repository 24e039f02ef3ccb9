"""Opt-in exponential backoff with jitter for callers of PoboClient.

The client itself never retries. Orchestration code that wants retries wraps
a client method explicitly, e.g. ``retry_with_backoff()(client.fetch_page)``,
and passes the result to ``paginate``.

Retries on TransportError and on ApiError with status 429, 500, 502, 503, 504.
Respects the Retry-After value carried by ApiError. Logs each retry attempt.
"""

from __future__ import annotations

import functools
import logging
import random
import time
from typing import Any, Callable

from pobo_sync.exceptions import ApiError, TransportError

logger = logging.getLogger(__name__)

# HTTP status codes that trigger a retry
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: float = 0.3,
) -> Callable:
    """Decorator: retry a function with exponential backoff + jitter.

    Args:
        max_retries: Maximum number of retry attempts.
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay cap in seconds.
        jitter: Jitter factor (0.0-1.0). Adds randomness to prevent thundering herd.

    Raises:
        ValueError: max_retries is negative
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return fn(*args, **kwargs)
                except ApiError as e:
                    if e.http_status not in RETRYABLE_STATUS_CODES or attempt == max_retries:
                        raise
                    delay = _compute_delay(attempt, base_delay, max_delay, jitter, e.retry_after)
                    logger.warning(
                        "Retry %d/%d for %s (HTTP %d), waiting %.1fs",
                        attempt + 1,
                        max_retries,
                        getattr(fn, "__name__", "call"),
                        e.http_status,
                        delay,
                    )
                    time.sleep(delay)
                except TransportError as e:
                    if attempt == max_retries:
                        raise
                    delay = _compute_delay(attempt, base_delay, max_delay, jitter)
                    logger.warning(
                        "Retry %d/%d for %s (%s), waiting %.1fs",
                        attempt + 1,
                        max_retries,
                        getattr(fn, "__name__", "call"),
                        "timeout" if e.timeout else "connection error",
                        delay,
                    )
                    time.sleep(delay)
            raise AssertionError("unreachable")

        return wrapper

    return decorator


def _compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    jitter: float,
    retry_after: float | None = None,
) -> float:
    """Exponential backoff: base * 2^attempt, capped, +/- jitter. Retry-After wins."""
    if retry_after is not None:
        return min(retry_after, max_delay)
    delay = min(base_delay * (2**attempt), max_delay)
    jitter_amount = delay * jitter
    delay += random.uniform(-jitter_amount, jitter_amount)
    return max(0.1, delay)

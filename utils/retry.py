"""Rate-limit backoff shared by every call to the vision service.

Only `openai.RateLimitError` is retried. The delay grows linearly:
attempt 1 waits one base delay, attempt 2 waits two, and so on. Any other
exception, or running out of retries, propagates to the caller, which treats
it as a failure of that one batch.
"""
import logging
import time as time_module
from collections.abc import Callable
from typing import TypeVar

from openai import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_RETRIES = 3
_BASE_DELAY = 5.0


def call_with_retry(
    fn: Callable[..., T],
    *args,
    max_retries: int = _MAX_RETRIES,
    base_delay: float = _BASE_DELAY,
    **kwargs,
) -> T:
    """Call `fn(*args, **kwargs)`, retrying up to `max_retries` times on rate limits."""
    attempt = 0
    while True:
        try:
            return fn(*args, **kwargs)
        except RateLimitError:
            if attempt >= max_retries:
                logger.warning("Rate limited; giving up after %d retries.", max_retries)
                raise
            attempt += 1
            delay = attempt * base_delay
            logger.info(
                "Rate limited; retrying in %.1fs (retry %d/%d).",
                delay, attempt, max_retries,
            )
            time_module.sleep(delay)

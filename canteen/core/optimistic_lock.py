"""
Canteen Service — Optimistic locking retry decorator

Orders carry a ``version_id`` column. A status write only lands when the
version the caller read is still current; otherwise the repository raises
StaleDataError and the decorated read-validate-write cycle runs again, so the
transition is re-checked against fresh state on every attempt.
"""
import asyncio
import functools
import logging
import random

from canteen.core.config import get_settings
from canteen.core.errors import Conflict

settings = get_settings()
logger = logging.getLogger(__name__)


class StaleDataError(Exception):
    """The row's version_id moved between our read and our write."""


def backoff_delay(attempt: int) -> float:
    """Seconds to wait before retry number ``attempt``: capped exponential plus jitter."""
    exponential = settings.OPT_LOCK_BASE_DELAY_MS * (2 ** attempt)
    capped = min(exponential, settings.OPT_LOCK_MAX_DELAY_MS)
    return (capped + random.uniform(0, settings.OPT_LOCK_JITTER_MS)) / 1000.0


def with_optimistic_retry(
    max_retries: int | None = None,
    conflict_message: str = "The order was modified concurrently. Please retry.",
):
    """
    Retry an async versioned write on StaleDataError. Once the attempts are
    used up the caller gets Conflict (409) instead of the raw error.

        @with_optimistic_retry()
        async def update_status(repo, order_id, ...):
            ...
    """
    attempts = max_retries or settings.OPT_LOCK_MAX_RETRIES

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except StaleDataError as exc:
                    if attempt >= attempts:
                        logger.error("%s: still stale after %d attempts (%s)", func.__name__, attempts, exc)
                        raise Conflict(conflict_message) from exc
                    delay = backoff_delay(attempt)
                    logger.warning(
                        "%s: stale version on attempt %d/%d, retrying in %.3fs",
                        func.__name__, attempt, attempts, delay,
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
        return wrapper
    return decorator

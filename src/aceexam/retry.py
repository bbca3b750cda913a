# bounded exponential backoff for quota / rate limit failures
import logging
import time
from typing import Callable, Optional, TypeVar

from . import config
from .errors import QuotaExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_quota_error(error: BaseException) -> bool:
    """True for rate limit signals: QuotaExceeded, HTTP status 429 or RESOURCE_EXHAUSTED"""
    if isinstance(error, QuotaExceeded):
        return True
    if getattr(error, "status_code", None) == 429:
        return True
    return "RESOURCE_EXHAUSTED" in str(error)


def with_retry(
    action: Callable[[], T],
    retries: Optional[int] = None,
    delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run action, retrying only quota errors with a doubling delay.

    With the defaults (retries=2, delay=2s) the action runs at most three
    times, waiting 2s and then 4s. Any other error propagates immediately.
    """
    retries = config.RETRIES if retries is None else retries
    delay = config.RETRY_DELAY if delay is None else delay

    attempt = 0
    while True:
        try:
            return action()
        except Exception as e:
            if not is_quota_error(e):
                raise
            if attempt >= retries:
                logger.error(f"Rate limit persisted after {attempt + 1} attempt(s)")
                if isinstance(e, QuotaExceeded):
                    raise
                raise QuotaExceeded(str(e)) from e
            logger.warning(f"API rate limit hit, retrying in {delay:.1f}s...")
            sleep(delay)
            attempt += 1
            delay *= 2

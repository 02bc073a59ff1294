"""
Retry helper for operations that fail with a known transient error kind.

Wraps tenacity with a fixed backoff: retry only on the given exception
types, give up after a fixed number of attempts and re-raise the last error.
"""
import logging
from functools import wraps

from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_fixed

logger = logging.getLogger(__name__)


def retry_on(error_types, attempts=3, delay_seconds=1.0, log=None):
    """
    Decorator retrying a callable on specific exception types.

    Args:
        error_types: Exception class or tuple of classes that trigger a retry
        attempts: Total number of calls, including the first
        delay_seconds: Fixed wait between calls
        log: Logger used for the before-sleep warning

    Example:
        >>> @retry_on(PermissionDeniedError, attempts=3, delay_seconds=1)
        ... def load_urls():
        ...     ...
    """
    if not isinstance(error_types, tuple):
        error_types = (error_types,)

    def decorator(func):
        @wraps(func)
        def wrapped(*args, **kwargs):
            return call_with_retry(
                func, *args,
                error_types=error_types,
                attempts=attempts,
                delay_seconds=delay_seconds,
                log=log,
                **kwargs
            )

        return wrapped

    return decorator


def call_with_retry(func, *args, error_types, attempts=3, delay_seconds=1.0, log=None, **kwargs):
    """
    Call func(*args, **kwargs), retrying on error_types.

    Settings-driven callers use this form so the policy is read per call
    rather than frozen at import time.
    """
    if not isinstance(error_types, tuple):
        error_types = (error_types,)

    retrying = Retrying(
        stop=stop_after_attempt(max(1, int(attempts))),
        wait=wait_fixed(max(0.0, float(delay_seconds))),
        retry=retry_if_exception_type(error_types),
        before_sleep=before_sleep_log(log or logger, logging.WARNING),
        reraise=True,
    )
    return retrying(func, *args, **kwargs)

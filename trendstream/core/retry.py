"""Retry policies built from settings."""
import logging
from typing import Tuple, Type

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_exponential,
)

from .settings import Settings


def bounded_retry(
    settings: Settings,
    retry_on: Tuple[Type[BaseException], ...],
    logger: logging.Logger,
) -> AsyncRetrying:
    """
    Retry a bounded number of times with capped exponential backoff.

    The last exception is re-raised once attempts are exhausted.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential(multiplier=settings.retry_initial_wait, max=settings.retry_max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def persistent_retry(
    settings: Settings,
    retry_on: Tuple[Type[BaseException], ...],
    logger: logging.Logger,
) -> AsyncRetrying:
    """Retry until cancelled; the wait between attempts is capped."""
    return AsyncRetrying(
        stop=stop_never,
        wait=wait_exponential(multiplier=settings.retry_initial_wait, max=settings.retry_max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

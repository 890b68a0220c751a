"""
Retry with exponential backoff for an unavailable store.

The core performs no internal retries: each operation is one atomic store
transaction. Callers sitting in front of the core (the CLI, a routing layer)
wrap calls with this decorator instead.
"""

from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tender_exchange.kernel.errors import StoreUnavailableError
from tender_exchange.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def retry_on_store_unavailable(
    max_attempts: int = 3,
    min_wait_ms: int = 100,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for StoreUnavailableError.

    Domain errors (validation, forbidden, conflicts) are never retried.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait_ms: Minimum wait time in milliseconds (default: 100)
        max_wait_ms: Maximum wait time in milliseconds (default: 1000)

    Example:
        @retry_on_store_unavailable()
        def list_open_tenders(...):
            return exchange.list_tenders(caller, filters)
    """
    return retry(
        retry=retry_if_exception_type(StoreUnavailableError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "Store unavailable, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )

"""
Retry helpers for read paths against the booking store.

Only read operations are wrapped. Writes (appointment commit) surface store
failures immediately so a booking is never inserted twice.
"""

import logging
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Generator, TypeVar, cast

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from core.constants import STORE_RETRY_BASE_DELAY_SECONDS, STORE_RETRY_MAX_ATTEMPTS
from core.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Connection-level failures; programming errors are not masked
STORE_FAILURES = (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.TimeoutError)


@contextmanager
def translate_store_errors(operation: str) -> Generator[None, None, None]:
    """Re-raise connection-level SQLAlchemy failures as StoreUnavailableError."""
    try:
        yield
    except STORE_FAILURES as e:
        logger.warning(f"Store failure during {operation}: {e}")
        raise StoreUnavailableError(details={"operation": operation}) from e


def retry_on_store_unavailable(
    max_attempts: int = STORE_RETRY_MAX_ATTEMPTS,
    base_delay: float = STORE_RETRY_BASE_DELAY_SECONDS,
) -> Callable[[F], F]:
    """
    Decorator to retry read operations that fail because the store is unavailable.

    Uses exponential backoff. If the first positional argument is a Session it is
    rolled back between attempts so the retry starts from a clean transaction.

    Args:
        max_attempts: Total attempts including the first call
        base_delay: Base delay in seconds (doubled on each retry)
    """
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, max_attempts + 1):
                try:
                    with translate_store_errors(func.__name__):
                        return func(*args, **kwargs)
                except StoreUnavailableError:
                    if attempt >= max_attempts:
                        raise
                    delay = base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"Store unavailable in {func.__name__} (attempt {attempt}/{max_attempts}), "
                        f"retrying in {delay:.2f} seconds"
                    )
                    if args and isinstance(args[0], Session):
                        args[0].rollback()
                    time.sleep(delay)
            raise StoreUnavailableError()  # pragma: no cover
        return cast(F, wrapper)
    return decorator

"""Retry logic for generation calls using tenacity."""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

import litellm
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import SvgCacheError, UpstreamError

F = TypeVar("F", bound=Callable[..., Any])

RETRYABLE_ERRORS = (TimeoutError, ConnectionError, litellm.Timeout, litellm.APIConnectionError)


def with_llm_retry(
    provider_name: str,
    max_attempts: int = 1,
) -> Callable[[F], F]:
    """Decorator to add retry logic to generation calls.

    Only transport errors are retried. With the default of one attempt the
    call is made exactly once.

    Args:
        provider_name: Name of the provider for error messages
        max_attempts: Total number of attempts, including the first

    Returns:
        Decorated function with retry logic

    """

    def decorator(func: F) -> F:
        @retry(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                f"{provider_name} attempt {retry_state.attempt_number}: {retry_state.outcome.exception() if retry_state.outcome else 'Unknown error'}",
            ),
        )
        @wraps(func)
        async def attempt(*args: Any, **kwargs: Any) -> Any:
            return await func(*args, **kwargs)

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await attempt(*args, **kwargs)
            except SvgCacheError:
                raise
            except Exception as e:
                logger.error(f"{provider_name} API error: {e}")
                raise UpstreamError(f"{provider_name} API error: {e}") from e

        return wrapper  # type: ignore[return-value]

    return decorator

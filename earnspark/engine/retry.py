"""
Gateway error hierarchy and backoff retry for provider calls.

Only rate-limited initiations are retried: a 429 means the STK push was never
sent, so repeating it cannot prompt the customer twice. Transport failures
are not retried because the push may already be on the customer's phone.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger("earnspark.retry")

BASE_DELAY = 1.0
MAX_DELAY = 10.0


class GatewayError(Exception):
    """Base exception for payment gateway errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, retriable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retriable = retriable


class GatewayTransportError(GatewayError):
    """The provider could not be reached (connect error, timeout, reset)."""


class GatewayResponseError(GatewayError):
    """The provider answered with a body that could not be understood."""

    def __init__(self, message: str, status_code: Optional[int] = None, raw_body: str = ""):
        super().__init__(message, status_code=status_code)
        self.raw_body = raw_body


class RateLimitError(GatewayError):
    """429 Too Many Requests from the payment provider."""

    def __init__(self, message: str = "Rate limited", retry_after: Optional[float] = None):
        super().__init__(message, status_code=429, retriable=True)
        self.retry_after = retry_after


async def with_retry(
    func: Callable[..., Any],
    *args: Any,
    max_retries: int = 2,
    base_delay: float = BASE_DELAY,
    **kwargs: Any,
) -> Any:
    """
    Execute an async function with exponential backoff on retriable errors.

    Args:
        func: Async callable to execute.
        max_retries: Maximum number of retry attempts.
        base_delay: First backoff delay in seconds.

    Returns:
        The result of the function call.

    Raises:
        GatewayError: On non-retriable failure or exhausted retries.
    """
    delay = base_delay

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except GatewayError as e:
            if not e.retriable or attempt >= max_retries:
                if e.retriable:
                    logger.error("Exhausted %d retries for provider call: %s", max_retries, e)
                raise

            sleep_for = min(delay, MAX_DELAY)
            if isinstance(e, RateLimitError) and e.retry_after:
                sleep_for = min(e.retry_after, MAX_DELAY)

            logger.warning(
                "Retriable error on attempt %d/%d: %s, sleeping %.1fs",
                attempt + 1,
                max_retries + 1,
                e,
                sleep_for,
            )
            await asyncio.sleep(sleep_for)
            delay = min(delay * 2, MAX_DELAY)

    raise GatewayError("Unknown error after retries")

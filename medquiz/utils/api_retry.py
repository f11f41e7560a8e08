"""
Retry with exponential backoff for language model calls.

Only infrastructure failures are retried here (rate limits, 5xx, dropped
connections, timeouts). A response that arrives but cannot be used is the
generation loop's business, not this module's.
"""

import random
import time
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3

    # Backoff timing (in seconds)
    initial_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.5  # Random factor 0-0.5x of delay

    retry_on_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504)
    retry_on_exceptions: Tuple[Type[Exception], ...] = (
        ConnectionError,
        TimeoutError,
    )

    rate_limit_header: str = "Retry-After"
    respect_retry_after: bool = True


OPENAI_RETRY_CONFIG = RetryConfig(
    max_retries=3,
    initial_delay=1.0,
    max_delay=60.0,
    retry_on_status_codes=(429, 500, 502, 503, 504, 520, 521, 522, 523, 524),
)

RETRYABLE_MESSAGES = (
    "rate limit",
    "too many requests",
    "timeout",
    "timed out",
    "connection",
    "temporarily unavailable",
    "service unavailable",
    "server error",
)


def calculate_delay(
    attempt: int,
    config: RetryConfig,
    retry_after: Optional[float] = None
) -> float:
    """
    Delay before the next try: exponential backoff plus jitter, capped.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration
        retry_after: Server-specified delay (Retry-After header)
    """
    if retry_after and config.respect_retry_after:
        jitter = random.uniform(0, config.jitter_factor * retry_after)
        return min(retry_after + jitter, config.max_delay)

    base_delay = config.initial_delay * (config.exponential_base ** attempt)
    jitter = random.uniform(0, config.jitter_factor * base_delay)
    return min(base_delay + jitter, config.max_delay)


def _retry_after(response, config: RetryConfig) -> Optional[float]:
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get(config.rate_limit_header)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _should_retry(exception: Exception, config: RetryConfig) -> Tuple[bool, Optional[float]]:
    """
    Decide whether an exception is worth another try.

    Returns:
        (should_retry, retry_after_seconds)
    """
    # openai.APIStatusError exposes status_code; httpx.HTTPStatusError exposes response
    status_code = getattr(exception, "status_code", None)
    response = getattr(exception, "response", None)
    if status_code is None and response is not None:
        status_code = getattr(response, "status_code", None)

    if isinstance(status_code, int):
        if status_code in config.retry_on_status_codes:
            return True, _retry_after(response, config)
        return False, None

    if isinstance(exception, config.retry_on_exceptions):
        return True, None

    error_msg = str(exception).lower()
    if any(pattern in error_msg for pattern in RETRYABLE_MESSAGES):
        return True, None

    return False, None


def retry_with_backoff(
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None
):
    """
    Decorator retrying a synchronous call with exponential backoff.

    Args:
        config: Retry configuration (defaults if None)
        on_retry: Callback(attempt, exception, delay) run before each sleep

    Usage:
        @retry_with_backoff(RetryConfig(max_retries=2))
        def call_model(prompt):
            ...
    """
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(config.max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    should_retry, retry_after = _should_retry(e, config)
                    if not should_retry or attempt >= config.max_retries:
                        logger.error(f"Request failed after {attempt + 1} attempt(s): {e}")
                        raise

                    delay = calculate_delay(attempt, config, retry_after)
                    logger.warning(
                        f"Attempt {attempt + 1}/{config.max_retries + 1} failed: {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    if on_retry:
                        on_retry(attempt, e, delay)
                    time.sleep(delay)

        return wrapper

    return decorator


def openai_retry(config: Optional[RetryConfig] = None):
    """
    Retry decorator preconfigured for OpenAI rate limits and outages.

    Usage:
        @openai_retry()
        def complete(prompt: str):
            return client.chat.completions.create(...)
    """
    def on_retry(attempt, exception, delay):
        logger.info(f"OpenAI API retry #{attempt + 1}: {type(exception).__name__}")

    return retry_with_backoff(config=config or OPENAI_RETRY_CONFIG, on_retry=on_retry)

"""Retry strategy with exponential backoff for AWS operations."""

import time
import random
from typing import Callable, Iterable, TypeVar, Optional
from functools import wraps

from uniform_pipelines.utils.errors import remote_error_name
from uniform_pipelines.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

DEFAULT_MAX_RETRIES = 5

# Error names reported by CodePipeline and CloudFormation when throttling
THROTTLING_ERROR_NAMES = frozenset({
    'ThrottlingException',
    'Throttling',
})


class RetryStrategy:
    """Retries an operation while it fails with one of a set of named errors.

    The delay before retry ``n`` (0-indexed) is
    ``min(max_delay, random() * 2 ** (1 + n % 3) * base_delay)``: the
    exponent cycles so the wait never grows past eight base delays, and
    there is no jitter floor.
    """

    def __init__(
        self,
        retryable_error_names: Iterable[str],
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = 0.1,
        max_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        random_source: Callable[[], float] = random.random,
    ):
        """Initialize retry strategy.

        Args:
            retryable_error_names: Error names (AWS error codes or exception
                class names) that trigger a retry
            max_retries: Maximum number of retry attempts
            base_delay: Base delay in seconds
            max_delay: Cap on the delay between attempts, in seconds
            sleep: Function used to wait between attempts
            random_source: Source of uniform random numbers in [0, 1)
        """
        self.retryable_error_names = frozenset(retryable_error_names)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep
        self._random = random_source

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """Determine if an error should trigger a retry.

        Args:
            error: The exception that occurred
            attempt: Number of retries already made

        Returns:
            True if the error is retryable and max retries not exceeded
        """
        if attempt >= self.max_retries:
            return False
        return remote_error_name(error) in self.retryable_error_names

    def get_delay(self, attempt: int) -> float:
        """Calculate delay in seconds before the next retry."""
        delay = self._random() * (2 ** (1 + (attempt % 3))) * self.base_delay
        return min(delay, self.max_delay)

    def execute_with_retry(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Execute a function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            Result of the function call

        Raises:
            The last exception, unchanged, once it is not retryable or
            retries are exhausted
        """
        attempt = 0
        while True:
            try:
                result = func(*args, **kwargs)
                if attempt > 0:
                    logger.info(f"Operation succeeded after {attempt} retries")
                return result
            except Exception as e:
                if not self.should_retry(e, attempt):
                    logger.debug(f"Error is not retryable or max retries exceeded: {e}")
                    raise

                delay = self.get_delay(attempt)
                logger.warning(
                    f"{remote_error_name(e)} encountered on attempt "
                    f"{attempt + 1}/{self.max_retries + 1}. Retrying in {delay:.2f}s..."
                )
                self._sleep(delay)
                attempt += 1


def with_retry(
    operation: Callable[[], T],
    retryable_error_names: Iterable[str],
    max_retries: int = DEFAULT_MAX_RETRIES,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """Run ``operation`` retrying on the named errors.

    Example:
        arn = with_retry(lambda: client.get_pipeline(name=name), ['ThrottlingException'])
    """
    strategy = RetryStrategy(
        retryable_error_names,
        max_retries=max_retries,
        sleep=sleep or time.sleep,
    )
    return strategy.execute_with_retry(operation)


def with_throttling_retry(func: Callable[..., T], *args, **kwargs) -> T:
    """Call ``func(*args, **kwargs)``, retrying AWS throttling errors."""
    strategy = RetryStrategy(THROTTLING_ERROR_NAMES)
    return strategy.execute_with_retry(func, *args, **kwargs)


def retrying(
    retryable_error_names: Iterable[str] = THROTTLING_ERROR_NAMES,
    max_retries: int = DEFAULT_MAX_RETRIES,
):
    """Decorator to add retry logic to a function.

    Example:
        @retrying(['ThrottlingException'], max_retries=3)
        def list_tags(client, arn):
            return client.list_tags_for_resource(resourceArn=arn)
    """
    names = frozenset(retryable_error_names)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            strategy = RetryStrategy(names, max_retries=max_retries)
            return strategy.execute_with_retry(func, *args, **kwargs)

        return wrapper

    return decorator

"""Retry strategies and transient-error classification.

A retry strategy decides whether a request gets another attempt after a
failure. Two strategies are provided:

- StandardRetryStrategy: retries transient failures with a fixed schedule
  of backoff delays
- NeverRetryStrategy: exactly one attempt, whatever the outcome. Used for
  presigning, where nothing is sent and a retry could only re-sign.

Transient (Retryable):
- Connection timeouts
- Connection errors
- Server errors (5xx)
- Rate limiting (429)

Permanent (Not Retryable):
- Client errors (4xx except 429)
- Signature mismatches (403)
- Authentication failures (401)
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

import httpx

# HTTP status codes that indicate transient server issues
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAYS = (5.0, 15.0, 30.0)


class RetryExhausted(Exception):
    """Raised when all retry attempts have been exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


def is_retryable_error(error: Exception) -> bool:
    """Determine if an error is transient and worth retrying.

    Args:
        error: The exception that was raised.

    Returns:
        True if the error is transient and should trigger a retry,
        False if the error is permanent and retrying won't help.
    """
    # Network-level errors are transient
    if isinstance(error, (httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout)):
        return True

    # HTTP status errors need case-by-case handling
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        return status_code in RETRYABLE_STATUS_CODES

    # All other errors are not retryable by default
    return False


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of asking a retry strategy about a failed attempt."""

    should_retry: bool
    delay: float = 0.0
    exhausted: bool = False

    @classmethod
    def no(cls) -> "RetryDecision":
        return cls(should_retry=False)


class RetryStrategy(ABC):
    """Decides whether a failed attempt is followed by another one."""

    max_attempts: int = 1

    def should_attempt_initial_request(self) -> bool:
        return True

    @abstractmethod
    def should_attempt_retry(self, attempts: int, error: Exception) -> RetryDecision:
        """Decide whether to retry after `attempts` attempts ended in `error`."""
        pass


class NeverRetryStrategy(RetryStrategy):
    """Permits exactly one attempt and never retries."""

    max_attempts = 1

    def should_attempt_retry(self, attempts: int, error: Exception) -> RetryDecision:
        return RetryDecision.no()

    def __repr__(self) -> str:
        return "NeverRetryStrategy()"


class StandardRetryStrategy(RetryStrategy):
    """Retries transient errors, waiting delays[n - 1] after the nth failure.

    Args:
        max_attempts: Maximum number of attempts (including first try).
        delays: Delay times (seconds) between retries. The last delay is
            reused if there are more retries than delays.
        classifier: Decides whether an error is transient.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delays: Sequence[float] = DEFAULT_DELAYS,
        classifier: Callable[[Exception], bool] = is_retryable_error,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delays = tuple(delays) or (0.0,)
        self.classifier = classifier

    def should_attempt_retry(self, attempts: int, error: Exception) -> RetryDecision:
        if not self.classifier(error):
            return RetryDecision.no()
        if attempts >= self.max_attempts:
            return RetryDecision(should_retry=False, exhausted=True)
        delay_index = min(attempts - 1, len(self.delays) - 1)
        return RetryDecision(should_retry=True, delay=self.delays[delay_index])

    def __repr__(self) -> str:
        return f"StandardRetryStrategy(max_attempts={self.max_attempts})"


def retry_with_backoff(
    func: Callable[..., Any],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    delays: Sequence[float] = DEFAULT_DELAYS,
    args: tuple = (),
    kwargs: Optional[dict] = None,
) -> Any:
    """Execute a function with retry logic and exponential backoff.

    A caller-side helper for code that sends requests; presigning never
    does. PresignedRequest.send covers the common case of sending a
    presigned URL.

    Args:
        func: The function to execute.
        max_attempts: Maximum number of attempts (including first try).
        delays: Sequence of delay times (seconds) between retries.
                delays[0] is used after first failure, etc.
        args: Positional arguments to pass to func.
        kwargs: Keyword arguments to pass to func.

    Returns:
        The return value of func if successful.

    Raises:
        RetryExhausted: If all attempts fail with retryable errors.
        Exception: If a non-retryable error occurs, it's raised immediately.

    Example:
        >>> upload = retry_with_backoff(
        ...     client.put,
        ...     args=(presigned.uri,),
        ...     kwargs={"content": body},
        ... )
    """
    if kwargs is None:
        kwargs = {}
    return run_with_strategy(
        lambda: func(*args, **kwargs),
        StandardRetryStrategy(max_attempts=max_attempts, delays=delays),
    )


def run_with_strategy(
    func: Callable[[], Any],
    strategy: RetryStrategy,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Call `func` until it succeeds or `strategy` declines another attempt.

    Raises:
        RetryExhausted: If the last permitted attempt failed with an error
            the strategy considers retryable.
        Exception: Errors the strategy does not retry are raised unchanged.
    """
    attempt = 1
    while True:
        try:
            return func()
        except Exception as e:
            decision = strategy.should_attempt_retry(attempt, e)
            if decision.should_retry:
                sleep(decision.delay)
                attempt += 1
                continue
            if decision.exhausted:
                raise RetryExhausted(
                    f"Operation failed after {attempt} attempts",
                    attempts=attempt,
                    last_error=e,
                ) from e
            raise

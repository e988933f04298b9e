"""
Bounded retry with exponential backoff.

A RetryPolicy is an immutable value shared by every remote call and every file
operation in appserver-https. It does not know about commands, sessions or documents:
it executes an awaitable factory up to ``max_attempts`` times, sleeping between
attempts, and re-raises the last failure once the attempts are exhausted or the
failure predicate says the error is not worth retrying.

Deterministic failures (validation, document structure, session preconditions) are
never retried by the default predicate.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from appserver_https._exceptions import (
    AlreadyConnected,
    ConnectorConfigurationError,
    InternalError,
    NotConnected,
    StillConnected,
    ValidationError,
)

__all__ = ["RetryPolicy", "DEFAULT_RETRY_POLICY", "is_retryable"]

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_NEVER_RETRIED: tuple[type[BaseException], ...] = (
    ValidationError,
    ConnectorConfigurationError,
    AlreadyConnected,
    NotConnected,
    StillConnected,
    InternalError,
)


def is_retryable(error: BaseException) -> bool:
    """Default failure predicate: retry everything except deterministic failures."""
    return isinstance(error, Exception) and not isinstance(error, _NEVER_RETRIED)


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry settings applied through `execute`.

    Attributes:
        max_attempts (int): Total number of attempts, including the first one.
        initial_delay (float): Seconds to wait after the first failed attempt.
        multiplier (float): Factor applied to the delay after each failed attempt.
        max_delay (float): Upper bound for a single delay in seconds.
        retry_on (Callable[[BaseException], bool]): Returns True when a failure should be retried.
    """

    max_attempts: int = 5
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 10.0
    retry_on: Callable[[BaseException], bool] = is_retryable

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValidationError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValidationError("Retry delays must not be negative")
        if self.multiplier < 1:
            raise ValidationError(
                f"multiplier must be at least 1, got {self.multiplier}"
            )

    def delay_for(self, attempt: int) -> float:
        """Return the sleep in seconds that follows the failed attempt number `attempt` (1-based)."""
        return min(self.initial_delay * (self.multiplier ** (attempt - 1)), self.max_delay)

    async def execute(
        self,
        operation: Callable[[int], Awaitable[T]],
        description: str,
    ) -> T:
        """
        Run `operation` until it succeeds or the policy gives up.

        Args:
            operation: A callable receiving the 1-based attempt number and returning an awaitable.
            description: Short text used in the log lines, e.g. "connect to localhost:9990".

        Returns:
            T: The result of the first successful attempt.

        Raises:
            Exception: The failure of the last attempt, or the first failure the predicate refuses to retry.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation(attempt)
            except Exception as e:
                if not self.retry_on(e):
                    raise
                if attempt >= self.max_attempts:
                    _LOGGER.error(
                        f"Giving up on '{description}' after {attempt} attempt(s): {e}"
                    )
                    raise
                delay = self.delay_for(attempt)
                _LOGGER.warning(
                    f"Attempt {attempt}/{self.max_attempts} to {description} failed: {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

        raise InternalError(f"Retry loop for '{description}' exited without a result")


DEFAULT_RETRY_POLICY = RetryPolicy()
"""The policy used when callers do not supply one."""

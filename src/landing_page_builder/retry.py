from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .config import Settings
from .errors import ConfigurationError, OperationFailedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[BaseException, int, int], None]
FailureCallback = Callable[[BaseException, int], Optional[T]]
ErrorFilter = Callable[[BaseException], bool]


class OutcomeKind(str, Enum):
    ok = "OK"
    degraded = "DEGRADED"
    fatal = "FATAL"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a retried operation.

    ``DEGRADED`` means every attempt failed and the value came from the
    ``on_failure`` fallback; ``cause`` then holds the last error.
    """

    kind: OutcomeKind
    value: Optional[T] = None
    cause: Optional[BaseException] = None
    attempts: int = 0

    @property
    def is_ok(self) -> bool:
        return self.kind == OutcomeKind.ok

    @property
    def is_degraded(self) -> bool:
        return self.kind == OutcomeKind.degraded

    @property
    def is_fatal(self) -> bool:
        return self.kind == OutcomeKind.fatal

    def unwrap(self) -> T:
        if self.kind == OutcomeKind.fatal:
            assert self.cause is not None
            raise self.cause
        return self.value  # type: ignore[return-value]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0

    @property
    def max_attempts(self) -> int:
        return max(0, self.max_retries) + 1

    def get_delay(self, attempt_index: int) -> float:
        return self.base_delay * (self.multiplier ** attempt_index)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(max_retries=settings.max_retries, base_delay=settings.retry_base_delay)


def is_retryable(error: BaseException) -> bool:
    return not isinstance(error, (ConfigurationError, OperationFailedError))


async def execute(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    on_retry: RetryCallback | None = None,
    on_failure: FailureCallback | None = None,
    error_filter: ErrorFilter = is_retryable,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Outcome[T]:
    """Run ``operation`` with exponential backoff and report how it ended."""
    policy = policy or RetryPolicy()
    max_attempts = policy.max_attempts

    for attempt_index in range(max_attempts):
        try:
            value = await operation()
            return Outcome(OutcomeKind.ok, value=value, attempts=attempt_index + 1)
        except Exception as exc:
            if not error_filter(exc):
                return Outcome(OutcomeKind.fatal, cause=exc, attempts=attempt_index + 1)

            if attempt_index + 1 < max_attempts:
                if on_retry is not None:
                    on_retry(exc, attempt_index + 1, max_attempts)
                delay = policy.get_delay(attempt_index)
                logger.warning(
                    "Attempt %s/%s failed: %s. Retrying in %.2fs...",
                    attempt_index + 1,
                    max_attempts,
                    exc,
                    delay,
                )
                await sleep(delay)
                continue

            logger.error("All %s attempts failed: %s", max_attempts, exc)
            if on_failure is not None:
                fallback = on_failure(exc, max_attempts)
                if fallback is not None:
                    return Outcome(
                        OutcomeKind.degraded,
                        value=fallback,
                        cause=exc,
                        attempts=max_attempts,
                    )
            return Outcome(OutcomeKind.fatal, cause=exc, attempts=max_attempts)

    raise RuntimeError("Retry loop exited without an outcome")


async def run_with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    base_delay: float = 1.0,
    on_retry: RetryCallback | None = None,
    on_failure: FailureCallback | None = None,
    error_filter: ErrorFilter = is_retryable,
) -> T:
    """Return the operation's value, the fallback value, or raise the last error."""
    outcome = await execute(
        operation,
        policy=RetryPolicy(max_retries=retries, base_delay=base_delay),
        on_retry=on_retry,
        on_failure=on_failure,
        error_filter=error_filter,
    )
    return outcome.unwrap()


__all__ = [
    "Outcome",
    "OutcomeKind",
    "RetryPolicy",
    "execute",
    "is_retryable",
    "run_with_retries",
]

"""
Retrying wrapper for external provider calls.

Only rate-limit failures (HTTP 429) are retried, with exponential backoff:
the wait before retry ``i`` (0-indexed) is ``base_delay * 2**i``. Every other
failure is terminal and propagates on the attempt that raised it.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar, Dict, Generic, Optional, TypeVar, Union

import requests

from visulearn.core.config import settings
from visulearn.core.errors import FailureKind, RateLimited, VisuLearnError
from visulearn.core.logger import get_logger

logger = get_logger("retry")

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 2.0  # seconds
    multiplier: ClassVar[int] = 2

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_index: int) -> float:
        """Delay before the retry with 0-based index ``retry_index``."""
        return self.base_delay * (self.multiplier ** retry_index)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.RETRY_MAX_RETRIES,
            base_delay=settings.RETRY_BASE_DELAY_SECONDS,
        )


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    attempts: int = 1
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    retryable: bool
    attempts: int = 1
    error: Optional[BaseException] = field(default=None, compare=False, repr=False)
    ok: ClassVar[bool] = False


CallOutcome = Union[Success, Failure]


def is_rate_limited(exc: BaseException) -> bool:
    """True iff the failure is identifiable as an HTTP 429 from a provider."""
    if isinstance(exc, RateLimited):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code == 429
    # SDK errors (e.g. elevenlabs ApiError) expose the HTTP status directly
    return getattr(exc, "status_code", None) == 429


def failure_from_exception(exc: BaseException, attempts: int = 1) -> Failure:
    retryable = is_rate_limited(exc)
    if retryable:
        kind = FailureKind.RATE_LIMITED
    elif isinstance(exc, VisuLearnError):
        kind = exc.kind
    else:
        kind = FailureKind.UNEXPECTED
    return Failure(kind=kind, message=str(exc) or type(exc).__name__,
                   retryable=retryable, attempts=attempts, error=exc)


def _describe(context: Optional[Dict[str, Any]]) -> str:
    if not context:
        return ""
    return " ".join(f"{k}={v}" for k, v in context.items()) + " "


class RetryingCaller:
    """Runs one zero-argument coroutine function with bounded 429 retries."""

    def __init__(self, policy: Optional[RetryPolicy] = None, sleep: Sleep = asyncio.sleep):
        self.policy = policy or RetryPolicy.from_settings()
        self._sleep = sleep

    async def attempt(self, operation: Operation, context: Optional[Dict[str, Any]] = None) -> CallOutcome:
        """Run ``operation`` and return a Success or a classified Failure."""
        where = _describe(context)
        total = self.policy.total_attempts

        for attempt in range(total):
            try:
                value = await operation()
            except Exception as exc:
                failure = failure_from_exception(exc, attempts=attempt + 1)
                if not failure.retryable:
                    logger.error(f"{where}attempt={attempt + 1}/{total} terminal failure: {failure.message}")
                    return failure
                if attempt >= self.policy.max_retries:
                    logger.error(f"{where}attempt={attempt + 1}/{total} rate limited, retries exhausted")
                    return failure
                delay = self.policy.delay_for(attempt)
                logger.warning(
                    f"{where}attempt={attempt + 1}/{total} rate limited, retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
                continue
            if attempt:
                logger.info(f"{where}succeeded after {attempt + 1} attempts")
            return Success(value, attempts=attempt + 1)

        # range(total) always returns inside the loop
        raise AssertionError("unreachable")

    async def call(self, operation: Operation, context: Optional[Dict[str, Any]] = None):
        """Run ``operation``; return its value or re-raise the last failure."""
        outcome = await self.attempt(operation, context)
        if outcome.ok:
            return outcome.value
        raise outcome.error

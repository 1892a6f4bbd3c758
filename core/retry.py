"""Bounded retry helper shared by every external call site."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryResult(Generic[T]):
    """Outcome of :func:`retry_async`.

    Attributes:
        ok: Whether an attempt succeeded.
        value: Return value of the successful attempt.
        error: Last exception when every attempt failed.
        attempts: Number of attempts actually made.
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error else ""


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 30,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    no_retry_on: Tuple[Type[BaseException], ...] = (),
    label: str = "operation",
) -> RetryResult[T]:
    """Run *operation* up to *attempts* times with a fixed *delay*.

    Exceptions in *no_retry_on*, or outside *retry_on*, end the loop
    immediately.  No sleep happens after the final attempt.
    ``CancelledError`` always propagates.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        attempts: Maximum number of attempts (at least one is made).
        delay: Seconds to wait between attempts.
        retry_on: Exception types that count as retryable.
        no_retry_on: Exception types that are never retried; checked
            before *retry_on*.
        label: Name used in log lines.

    Returns:
        :class:`RetryResult` carrying either the value or the last error.
    """
    attempts = max(1, attempts)
    last_error: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            value = await operation()
            return RetryResult(ok=True, value=value, attempts=attempt)
        except asyncio.CancelledError:
            raise
        except no_retry_on as exc:
            logger.error("%s failed permanently: %s", label, exc)
            return RetryResult(ok=False, error=exc, attempts=attempt)
        except retry_on as exc:
            last_error = exc
            logger.warning(
                "%s failed (attempt %d/%d): %s",
                label, attempt, attempts, exc,
            )
        except Exception as exc:
            logger.error("%s failed permanently: %s", label, exc)
            return RetryResult(ok=False, error=exc, attempts=attempt)

        if attempt < attempts:
            logger.info(
                "Waiting %s sec before retrying %s", delay, label,
            )
            await asyncio.sleep(delay)

    logger.info("%s unsuccessful after %d attempts, skip", label, attempts)
    return RetryResult(ok=False, error=last_error, attempts=attempts)

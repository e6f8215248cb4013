"""
Retry with exponential backoff.

One reusable implementation for every call site that wants bounded retries
(currently the telemetry sink). The delay doubles from ``base_delay`` after
each failed attempt; no sleep follows the final attempt.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Type, Union


logger = logging.getLogger(__name__)

Operation = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the first try)
        base_delay: Delay in seconds before the second attempt
        backoff_multiplier: Factor applied to the delay after every failure
        max_delay: Upper bound for a single delay, in seconds
    """
    max_attempts: int = 3
    base_delay: float = 0.1
    backoff_multiplier: float = 2.0
    max_delay: float = 5.0


@dataclass
class RetryResult:
    """Outcome of a retried operation."""
    success: bool
    result: Any = None
    attempts: int = 0
    error: Optional[BaseException] = None
    error_history: List[str] = field(default_factory=list)


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Delay in seconds to wait after the given (0-based) failed attempt.

    >>> calculate_delay(0, RetryConfig(base_delay=0.1))
    0.1
    >>> calculate_delay(2, RetryConfig(base_delay=0.1))
    0.4
    """
    delay = config.base_delay * (config.backoff_multiplier ** attempt)
    return min(round(delay, 6), config.max_delay)


async def retry_with_backoff(
    operation: Operation,
    config: RetryConfig,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    operation_name: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryResult:
    """
    Execute ``operation`` until it succeeds or the attempts run out.

    ``operation`` may be a plain callable or return an awaitable. Errors
    outside ``retry_on`` stop immediately. The function itself never raises
    for a failing operation; inspect the returned ``RetryResult``.
    """
    error_history: List[str] = []
    last_error: Optional[BaseException] = None

    for attempt in range(config.max_attempts):
        try:
            result = operation()
            if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                result = await result

            if attempt > 0:
                logger.info(f"{operation_name} succeeded after {attempt + 1} attempts")

            return RetryResult(
                success=True,
                result=result,
                attempts=attempt + 1,
                error_history=error_history,
            )

        except retry_on as e:
            last_error = e
            error_history.append(str(e))
            logger.warning(f"{operation_name} failed on attempt {attempt + 1}/{config.max_attempts}: {e}")

            if attempt < config.max_attempts - 1:
                delay = calculate_delay(attempt, config)
                logger.debug(f"Backing off for {delay:.3f}s before retry")
                await sleep(delay)

        except Exception as e:
            logger.error(f"{operation_name} failed with non-retryable error: {e}")
            error_history.append(str(e))
            return RetryResult(
                success=False,
                attempts=attempt + 1,
                error=e,
                error_history=error_history,
            )

    logger.error(f"{operation_name} exhausted all {config.max_attempts} attempts")
    return RetryResult(
        success=False,
        attempts=config.max_attempts,
        error=last_error,
        error_history=error_history,
    )


async def retry(
    operation: Operation,
    max_attempts: int,
    base_delay: float,
    operation_name: str = "operation",
) -> Any:
    """
    Shorthand for the common case: retry, then re-raise the last error.

    Example:
        >>> await retry(lambda: transport.send(item), max_attempts=3, base_delay=0.1)
    """
    outcome = await retry_with_backoff(
        operation,
        RetryConfig(max_attempts=max_attempts, base_delay=base_delay),
        operation_name=operation_name,
    )
    if not outcome.success:
        raise outcome.error
    return outcome.result

import asyncio
from typing import Any, Awaitable, Callable, Generic, NamedTuple, Optional, TypeVar, Union

from tab_grouper.errors import TabStoreError
from tab_grouper.utils.logger import logger

T = TypeVar("T")

# Group collapse races the host's own tab-strip updates, so it gets a few tries
COLLAPSE_MAX_ATTEMPTS = 5
# Fixed pause between collapse attempts (seconds); no backoff
COLLAPSE_RETRY_DELAY_S = 0.025


class RetryPolicy(NamedTuple):
    max_attempts: int
    delay_s: float = 0.0


COLLAPSE_RETRY = RetryPolicy(max_attempts=COLLAPSE_MAX_ATTEMPTS, delay_s=COLLAPSE_RETRY_DELAY_S)
SINGLE_ATTEMPT = RetryPolicy(max_attempts=1)


class Success(Generic[T]):
    def __init__(self, value: T, attempts: int = 1):
        self.value = value
        self.attempts = attempts

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Success(value={self.value!r}, attempts={self.attempts})"


class Exhausted:
    def __init__(self, attempts: int, error: Optional[BaseException] = None):
        self.attempts = attempts
        self.error = error

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"Exhausted(attempts={self.attempts}, error={self.error!r})"


RetryResult = Union[Success[Any], Exhausted]


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Union[Success[T], Exhausted]:
    """Run an async operation until it succeeds or the policy runs out.

    Only ``TabStoreError`` counts as a retryable failure; anything else
    propagates to the caller unchanged.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: How many attempts to make and how long to wait between them
        sleep: Awaitable delay, replaceable in tests

    Returns:
        Success with the operation's value, or Exhausted with the last error
    """
    last_error: Optional[BaseException] = None
    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return Success(await operation(), attempts=attempt)
        except TabStoreError as e:
            last_error = e
            logger.debug(f"Attempt {attempt}/{attempts} failed: {e}")
            if attempt < attempts and policy.delay_s > 0:
                await sleep(policy.delay_s)
    return Exhausted(attempts=attempts, error=last_error)

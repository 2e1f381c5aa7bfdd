import time, random
from typing import Callable, Tuple, Type, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def with_backoff(
    fn: Callable[[], T],
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Callable[[BaseException], bool] = lambda exc: True,
    max_retries: int = 3,
    base: float = 0.8,
    cap: float = 8.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call fn, retrying retryable failures with jittered exponential backoff."""
    for i in range(max_retries):
        try:
            return fn()
        except retry_on as exc:
            if i == max_retries - 1 or not should_retry(exc):
                raise
            delay = min(cap, base * (2 ** i)) * (1 + 0.1 * random.random())
            logger.warning("retrying_after_error", attempt=i + 1, delay=round(delay, 2), error=str(exc))
            sleep(delay)
    raise RuntimeError("max_retries must be >= 1")

"""Exponential backoff with jitter for transiently failing calls."""

import logging
import random
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from filestore.core.config.models import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Retryer:
    """Retry a zero argument call, sleeping min(random() * base**attempt, max_backoff)."""

    def __init__(
        self,
        max_attempts: int = 3,
        max_backoff: float = 20.0,
        base: float = 2.0,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        sleep: Callable[[float], None] = time.sleep,
        rand: Callable[[], float] = random.random,
    ):
        """
        Initialize the retryer.

        Args:
            max_attempts: Retries allowed after the first call
            max_backoff: Upper bound on a single sleep, in seconds
            base: Exponential backoff base
            retry_on: Exception types that trigger a retry; anything else propagates
            sleep: Sleep function, replaceable in tests
            rand: Jitter source returning a float in [0, 1)
        """
        self.max_attempts = max_attempts
        self.max_backoff = max_backoff
        self.base = base
        self.retry_on = retry_on
        self._sleep = sleep
        self._rand = rand

    @classmethod
    def from_config(cls, config: Optional[RetryConfig] = None, **kwargs) -> "Retryer":
        config = config or RetryConfig()
        return cls(
            max_attempts=config.max_attempts,
            max_backoff=config.max_backoff,
            base=config.base,
            **kwargs,
        )

    def backoff(self, attempt: int) -> float:
        return min(self._rand() * self.base ** attempt, self.max_backoff)

    def send(self, fn: Callable[[], T]) -> T:
        """
        Call fn until it succeeds or the retries are used up.

        Returns:
            The first successful result

        Raises:
            The last error raised by fn once max_attempts retries have failed
        """
        attempt = 0
        while True:
            try:
                return fn()
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    logger.error(f"Giving up after {attempt + 1} attempts: {e}")
                    raise
                delay = self.backoff(attempt)
                attempt += 1
                logger.warning(
                    f"Attempt {attempt} of {self.max_attempts + 1} failed: {e}. "
                    f"Retrying in {delay:.2f}s"
                )
                self._sleep(delay)

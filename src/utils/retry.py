# src/utils/retry.py
"""
Retry policy as a value + a generic "retry this idempotent call" combinator.
Knows nothing about HTTP; callers decide what is retryable by raising the
right EvidenceError subclass.
"""
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from src.schemas.errors import RateLimitedError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE = (RateLimitedError, UpstreamTimeoutError)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 10.0
    jitter: float = 0.5
    max_retry_after: float = 60.0

    @classmethod
    def from_cfg(cls, cfg) -> "RetryPolicy":
        return cls(
            max_attempts=cfg.max_attempts,
            base_delay=cfg.base_delay,
            backoff_factor=cfg.backoff_factor,
            max_delay=cfg.max_delay,
            jitter=cfg.jitter,
            max_retry_after=cfg.max_retry_after,
        )

    def delay_for(self, attempt: int, rng: random.Random | None = None) -> float:
        """backoff before retry number `attempt` (1-based)."""
        rng = rng or random
        delay = min(self.max_delay, self.base_delay * (self.backoff_factor ** (attempt - 1)))
        return delay + rng.uniform(0, self.jitter) if self.jitter > 0 else delay


def retry_call(
        fn: Callable[[], T],
        policy: RetryPolicy,
        retry_on: tuple = RETRYABLE,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        label: str = "call",
) -> T:
    """
    Run fn() up to policy.max_attempts times.
    - exceptions outside `retry_on` propagate immediately (fail fast)
    - RateLimitedError with retry_after waits exactly that long (capped), no jitter
    - the last failure is re-raised as-is once attempts run out
    """
    attempts = max(1, int(policy.max_attempts))
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as e:
            if attempt == attempts:
                raise
            retry_after = getattr(e, "retry_after", None)
            if retry_after is not None:
                delay = min(float(retry_after), policy.max_retry_after)
            else:
                delay = policy.delay_for(attempt, rng)
            logger.warning("%s failed (%s), attempt %d/%d, retrying in %.2fs",
                           label, e.__class__.__name__, attempt, attempts, delay)
            sleep(max(0.0, delay))
    raise AssertionError("unreachable")

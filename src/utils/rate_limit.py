# src/utils/rate_limit.py
"""
Local per-key sliding-window limiter, applied before we dispatch to a platform.

The only state shared between worker threads, so every access goes through one lock.
Keys are kept in an LRU bounded by max_keys; sweep() drops keys whose window is empty
and is meant to be called by the owner (e.g. at the end of a request).
"""
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    remaining: int
    retry_in: float  # seconds until the oldest hit leaves the window


class SlidingWindowRateLimiter:
    def __init__(self, limit: int = 60, window_s: float = 60.0, max_keys: int = 1024,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        if limit < 1 or window_s <= 0:
            raise ValueError("limit must be >= 1 and window_s > 0")
        self.limit = limit
        self.window_s = window_s
        self.max_keys = max_keys
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._hits: "OrderedDict[str, deque[float]]" = OrderedDict()

    @classmethod
    def from_cfg(cls, cfg) -> "SlidingWindowRateLimiter":
        return cls(limit=cfg.limit, window_s=cfg.window_s, max_keys=cfg.max_keys)

    def _prune(self, q: deque, now: float):
        while q and now - q[0] >= self.window_s:
            q.popleft()

    def try_acquire(self, key: str) -> RateDecision:
        with self._lock:
            now = self._clock()
            q = self._hits.get(key)
            if q is None:
                q = deque()
                self._hits[key] = q
                while len(self._hits) > self.max_keys:
                    self._hits.popitem(last=False)
            else:
                self._hits.move_to_end(key)
            self._prune(q, now)
            if len(q) < self.limit:
                q.append(now)
                return RateDecision(True, self.limit - len(q), 0.0)
            return RateDecision(False, 0, max(0.0, self.window_s - (now - q[0])))

    def acquire(self, key: str) -> None:
        """block until a slot for `key` frees up."""
        while True:
            decision = self.try_acquire(key)
            if decision.allowed:
                return
            self._sleep(decision.retry_in)

    def sweep(self) -> int:
        """drop keys with no hits left in the window; returns how many were removed."""
        with self._lock:
            now = self._clock()
            dead = []
            for key, q in self._hits.items():
                self._prune(q, now)
                if not q:
                    dead.append(key)
            for key in dead:
                del self._hits[key]
            return len(dead)

    def __len__(self):
        with self._lock:
            return len(self._hits)

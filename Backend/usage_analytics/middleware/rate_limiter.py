"""In-memory per-key rate limiter.

NOTE:
- Works per-process only. With multiple Uvicorn workers or multiple pods,
  limits will not be shared.
- Fixed window: a key gets `limit` admissions per `window_seconds`, and the
  counter resets once the window's reset instant has passed. Bursts of up to
  2x the limit across a window boundary are accepted.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional
import threading
import time
import logging

logger = logging.getLogger(__name__)


@dataclass
class RateLimitWindow:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_in: int  # whole seconds until the window resets


class _Shard:
    __slots__ = ("lock", "windows")

    def __init__(self):
        self.lock = threading.Lock()
        self.windows: Dict[Hashable, RateLimitWindow] = {}


class RateLimiter:
    """
    Fixed-window rate limiter keyed by API key identity.

    Keys are striped over `shards`, each guarded by its own lock, so different
    keys rarely contend and a single key's window is always updated atomically.
    Thread-safe. Per-process only.
    """

    def __init__(
        self,
        limit: int = 100,
        window_seconds: float = 60.0,
        shards: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.limit = int(limit)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._shards: List[_Shard] = [_Shard() for _ in range(max(1, int(shards)))]

        self._sweep_lock = threading.Lock()
        self._next_sweep_at = clock() + self.window_seconds

    def _shard_for(self, key: Hashable) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def check(self, key: Hashable) -> RateLimitDecision:
        """Count one request for `key` and decide whether it is admitted."""
        now = self._clock()
        shard = self._shard_for(key)

        with shard.lock:
            window = shard.windows.get(key)
            if window is None or now > window.reset_at:
                window = RateLimitWindow(count=1, reset_at=now + self.window_seconds)
                shard.windows[key] = window
                allowed = True
            elif window.count >= self.limit:
                # Saturated: stop counting until the window resets
                allowed = False
            else:
                window.count += 1
                allowed = True
            remaining = max(0, self.limit - window.count)
            reset_in = max(1, int(window.reset_at - now + 0.999))

        self._maybe_sweep(now)
        return RateLimitDecision(allowed=allowed, limit=self.limit, remaining=remaining, reset_in=reset_in)

    def admit(self, key: Hashable) -> bool:
        return self.check(key).allowed

    def _maybe_sweep(self, now: float) -> None:
        # At most one sweep per window length; callers never wait on it.
        if now < self._next_sweep_at or not self._sweep_lock.acquire(blocking=False):
            return
        try:
            if now >= self._next_sweep_at:
                self._next_sweep_at = now + self.window_seconds
                self.sweep(now)
        finally:
            self._sweep_lock.release()

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop windows whose reset instant passed more than one window ago."""
        if now is None:
            now = self._clock()
        cutoff = now - self.window_seconds
        dropped = 0
        for shard in self._shards:
            with shard.lock:
                stale = [k for k, w in shard.windows.items() if w.reset_at < cutoff]
                for k in stale:
                    del shard.windows[k]
                dropped += len(stale)
        if dropped:
            logger.debug("Rate limiter swept %d stale windows", dropped)
        return dropped

    def tracked_keys(self) -> int:
        """Number of keys currently holding a window."""
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.windows)
        return total


def rate_limit_headers(decision: RateLimitDecision) -> Dict[str, str]:
    """Standard-ish headers describing the caller's current window."""
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_in),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(decision.reset_in)
    return headers

"""Fixed-window admission counters.

Window boundaries are not smoothed: a client can spend its whole budget at
the end of one window and again at the start of the next (burst at the
boundary). That is accepted behaviour of fixed-window counting.

Two backends with the same ``consume(key)`` contract:
  - AdmissionCounter: in-process, striped locks (one lock per stripe, so
    different keys rarely contend and a key's read-modify-write is atomic)
  - RedisAdmissionCounter: shared across processes/instances
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

import redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionVerdict:
    allowed: bool
    retry_after: float | None = None
    count: int = 0


@dataclass
class CounterEntry:
    count: int
    window_reset_at: float


class AdmissionCounter:
    """In-memory fixed-window counter.

    Args:
        limit: Requests allowed per window.
        window: Window size in seconds.
        num_stripes: Lock stripes (power of 2).
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(self, limit: int, window: float, num_stripes: int = 16, clock=time.monotonic):
        if limit <= 0 or window <= 0:
            raise ValueError("limit and window must be positive")
        if num_stripes <= 0 or (num_stripes & (num_stripes - 1)) != 0:
            raise ValueError("num_stripes must be a positive power of 2")
        self.limit = limit
        self.window = float(window)
        self._clock = clock
        self._mask = num_stripes - 1
        self._stripes: list[dict] = [{} for _ in range(num_stripes)]
        self._locks = [threading.Lock() for _ in range(num_stripes)]

    def consume(self, key: str) -> AdmissionVerdict:
        idx = hash(key) & self._mask
        with self._locks[idx]:
            now = self._clock()
            entries = self._stripes[idx]
            entry = entries.get(key)

            if entry is None or now >= entry.window_reset_at:
                # window baru: reset ke 1, bukan increment
                entries[key] = CounterEntry(count=1, window_reset_at=now + self.window)
                return AdmissionVerdict(True, None, 1)

            if entry.count >= self.limit:
                return AdmissionVerdict(False, entry.window_reset_at - now, entry.count)

            entry.count += 1
            return AdmissionVerdict(True, None, entry.count)

    def peek(self, key: str) -> CounterEntry | None:
        idx = hash(key) & self._mask
        with self._locks[idx]:
            entry = self._stripes[idx].get(key)
            return CounterEntry(entry.count, entry.window_reset_at) if entry else None

    def purge_expired(self) -> int:
        """Drop entries whose window has elapsed. Returns how many were removed."""
        removed = 0
        for idx, lock in enumerate(self._locks):
            with lock:
                now = self._clock()
                entries = self._stripes[idx]
                expired = [k for k, e in entries.items() if now >= e.window_reset_at]
                for k in expired:
                    del entries[k]
                removed += len(expired)
        if removed:
            logger.debug("Purged %s expired rate-limit entries", removed)
        return removed

    def __len__(self) -> int:
        total = 0
        for idx, lock in enumerate(self._locks):
            with lock:
                total += len(self._stripes[idx])
        return total


class RedisAdmissionCounter:
    """Fixed-window counter on a shared Redis.

    The window starts at the key's first request (SET NX PX) and ends when
    the key expires, so the count restarts at 1 in the next window. The
    three commands run in one MULTI/EXEC transaction.
    """

    def __init__(self, client, limit: int, window: float, prefix: str = "guard:rate"):
        if limit <= 0 or window <= 0:
            raise ValueError("limit and window must be positive")
        self.client = client
        self.limit = limit
        self.window = float(window)
        self.prefix = prefix

    def consume(self, key: str) -> AdmissionVerdict:
        rate_key = f"{self.prefix}:{key}"
        window_ms = int(self.window * 1000)
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.set(rate_key, 0, px=window_ms, nx=True)
            pipe.incr(rate_key)
            pipe.pttl(rate_key)
            _, current, ttl_ms = pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Rate limiter Redis error: {e}")
            # fallback: jangan blok request
            return AdmissionVerdict(True, None, 0)

        current = int(current)
        if current > self.limit:
            retry_after = (ttl_ms if ttl_ms and ttl_ms > 0 else window_ms) / 1000.0
            return AdmissionVerdict(False, retry_after, current)
        return AdmissionVerdict(True, None, current)

    def purge_expired(self) -> int:
        # Redis expires keys on its own
        return 0


class RateLimitPolicy:
    """Routes a request to the counter of its endpoint class.

    Classes are matched by longest path prefix; unmatched paths use the
    ``default`` counter. The counter key is ``"<address>:<class>"``.
    """

    DEFAULT_CLASS = "default"

    def __init__(self, default, classes=None):
        self.default = default
        # (prefix, name, counter), longest prefix first
        self.classes = sorted(classes or [], key=lambda c: len(c[0]), reverse=True)

    def classify(self, path: str):
        for prefix, name, counter in self.classes:
            if path.startswith(prefix):
                return name, counter
        return self.DEFAULT_CLASS, self.default

    def consume(self, address: str, path: str = "/") -> AdmissionVerdict:
        name, counter = self.classify(path or "/")
        return counter.consume(f"{address}:{name}")

    def counters(self):
        return [self.default] + [counter for _, _, counter in self.classes]

    def purge_expired(self) -> int:
        return sum(counter.purge_expired() for counter in self.counters())


def get_redis_client(url: str):
    """Connect and ping; returns None when Redis is unreachable."""
    try:
        client = redis.from_url(url, decode_responses=False)
        # test koneksi
        client.ping()
        logger.info("Redis client initialized")
        return client
    except redis.RedisError as e:
        logger.warning("Redis unavailable: %s", e)
        return None


def build_rate_limit_policy(backend: str, limit: int, window: float, classes=None, redis_client=None):
    """Create a RateLimitPolicy for ``backend`` ("memory" or "redis").

    ``classes`` maps class name to ``{"prefix", "limit", "window"}``. Falls
    back to in-memory counters when the redis backend is requested but no
    client is available.
    """
    if backend == "redis" and redis_client is None:
        logger.warning("RATE_LIMIT_BACKEND=redis but Redis is unavailable, using in-memory counters")
        backend = "memory"

    def make(lim, win):
        if backend == "redis":
            return RedisAdmissionCounter(redis_client, lim, win)
        return AdmissionCounter(lim, win)

    class_counters = [
        (cfg["prefix"], name, make(cfg["limit"], cfg["window"]))
        for name, cfg in (classes or {}).items()
    ]
    return RateLimitPolicy(make(limit, window), class_counters)

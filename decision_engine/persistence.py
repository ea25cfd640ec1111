"""Fire-and-forget persistence off the request path.

Request threads hand jobs (security event insert, threat intel merge,
request log insert) to ``submit``; a single background consumer runs them
in FIFO order, so writes for one address land in the order they were
decided. Failures are counted and logged, never raised to the submitter.

Without ``start()`` nothing runs in the background and ``flush()`` drains
the buffer on the calling thread (tests, management commands).
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable

from django.db import close_old_connections

logger = logging.getLogger(__name__)


class PersistenceQueue:
    """
    Args:
        flush_interval: Seconds between background drains.
        max_buffer_size: Jobs beyond this are dropped (and counted).
    """

    def __init__(self, flush_interval: float = 0.2, max_buffer_size: int = 10_000) -> None:
        self._buffer: deque[tuple[str, Callable[[], object]]] = deque()
        self._flush_interval = flush_interval
        self._max_buffer_size = max_buffer_size
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._drain_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._completed = 0
        self._failures = 0
        self._dropped = 0
        self.last_error: BaseException | None = None

    def submit(self, label: str, job: Callable[[], object]) -> bool:
        """Queue ``job``. Returns False if the buffer is full and it was dropped."""
        with self._stats_lock:
            # bound check and append are one step
            full = len(self._buffer) >= self._max_buffer_size
            if full:
                self._dropped += 1
            else:
                self._buffer.append((label, job))
        if full:
            logger.warning("Persistence buffer full (%s), dropping %s job", self._max_buffer_size, label)
            return False
        return True

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="security-event-writer")
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self.flush()

    def _run(self) -> None:
        while not self._stop.wait(self._flush_interval):
            self.flush()
            close_old_connections()

    def flush(self) -> int:
        """Run every queued job. Returns how many ran (successfully or not)."""
        ran = 0
        with self._drain_lock:
            while True:
                try:
                    label, job = self._buffer.popleft()
                except IndexError:
                    break
                ran += 1
                try:
                    job()
                except Exception as e:
                    with self._stats_lock:
                        self._failures += 1
                    self.last_error = e
                    logger.exception("Persistence job %s failed", label)
                else:
                    with self._stats_lock:
                        self._completed += 1
        return ran

    @property
    def pending(self) -> int:
        return len(self._buffer)

    @property
    def completed(self) -> int:
        with self._stats_lock:
            return self._completed

    @property
    def failures(self) -> int:
        with self._stats_lock:
            return self._failures

    @property
    def dropped(self) -> int:
        with self._stats_lock:
            return self._dropped

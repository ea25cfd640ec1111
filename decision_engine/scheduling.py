import logging
import threading

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run ``func`` every ``interval`` seconds on a daemon thread.

    A tick that raises is logged and the loop carries on. Ticks never
    overlap: the next wait starts only after the previous call returns.
    """

    def __init__(self, name, interval, func, run_immediately=True):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.run_immediately = run_immediately
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
        self._thread.start()

    def stop(self, timeout=5.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self):
        if self.run_immediately:
            self.tick()
        while not self._stop.wait(self.interval):
            self.tick()

    def tick(self):
        try:
            self.func()
        except Exception:
            logger.exception("Periodic task %s failed", self.name)

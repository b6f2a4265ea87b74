"""
Countdown Timer
Whole-attempt countdown with one-second granularity
"""
import logging
import threading

from parasha_quiz.extensions import socketio

logger = logging.getLogger(__name__)


class CountdownTimer:
    """
    Counts down from `seconds` and calls `on_expire` once when it reaches zero.

    `tick()` does the work of one interval; `start()` drives it from a
    Socket.IO background task. `stop()` may be called any number of times,
    from any exit path, and only the first call has an effect.
    """

    def __init__(self, seconds, on_expire, on_tick=None, interval=1):
        self.remaining = int(seconds)
        self.interval = interval
        self._on_expire = on_expire
        self._on_tick = on_tick
        self._lock = threading.Lock()
        self._running = False
        self._stopped = False

    @property
    def running(self):
        return self._running and not self._stopped

    @property
    def stopped(self):
        return self._stopped

    def start(self):
        """Spawn the background loop; no-op when already started or stopped"""
        with self._lock:
            if self._running or self._stopped:
                return False
            self._running = True
        socketio.start_background_task(self._run)
        return True

    def _run(self):
        while not self._stopped:
            socketio.sleep(self.interval)
            if self._stopped:
                break
            try:
                self.tick()
            except Exception:
                logger.exception('Countdown callback failed')
                self.stop()

    def tick(self):
        """
        Advance one interval

        Returns:
            int: seconds remaining after this tick
        """
        with self._lock:
            if self._stopped:
                return self.remaining
            self.remaining = max(0, self.remaining - 1)
            remaining = self.remaining
            expired = remaining == 0
            if expired:
                self._stopped = True

        if self._on_tick:
            self._on_tick(remaining)
        if expired:
            logger.info('Countdown reached zero')
            self._on_expire()
        return remaining

    def stop(self):
        """
        Cancel the countdown

        Returns:
            bool: True only for the call that actually stopped it
        """
        with self._lock:
            if self._stopped:
                return False
            self._stopped = True
            return True

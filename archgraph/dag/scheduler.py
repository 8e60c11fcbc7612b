import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class ScheduledCall:
    """Handle for a delayed callback; cancel() is safe to call more than once"""

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class Scheduler:
    """Runs a callback once after a delay"""

    def schedule(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        raise NotImplementedError

    def shutdown(self):
        pass


class _TimerCall(ScheduledCall):

    def __init__(self, delay, callback):
        super().__init__(delay, callback)
        self._timer = threading.Timer(delay, self._fire)
        self._timer.daemon = True

    def _fire(self):
        if not self.cancelled:
            self.callback()

    def start(self):
        self._timer.start()

    def cancel(self):
        super().cancel()
        self._timer.cancel()


class TimerScheduler(Scheduler):
    """Schedules callbacks on threading.Timer threads"""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: List[_TimerCall] = []

    def schedule(self, delay, callback):
        call = _TimerCall(delay, callback)
        with self._lock:
            self._pending = [c for c in self._pending if not c.cancelled and c._timer.is_alive()]
            self._pending.append(call)
        call.start()
        return call

    def shutdown(self):
        with self._lock:
            pending, self._pending = self._pending, []
        for call in pending:
            call.cancel()
        logger.info(f"Timer scheduler shut down, cancelled {len(pending)} pending calls")


class ManualScheduler(Scheduler):
    """
    Holds callbacks until the caller fires them.

    Cancelled calls stay in the queue and are skipped when fired, so tests
    can also fire a stale callback directly through its handle.
    """

    def __init__(self):
        self.calls: List[ScheduledCall] = []

    def schedule(self, delay, callback):
        call = ScheduledCall(delay, callback)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> List[ScheduledCall]:
        return [call for call in self.calls if not call.cancelled]

    def fire_next(self) -> bool:
        """Fire the oldest pending call; False when none is pending"""
        while self.calls:
            call = self.calls.pop(0)
            if not call.cancelled:
                call.callback()
                return True
        return False

    def fire_all(self, limit: Optional[int] = None) -> int:
        """Fire calls, including ones they schedule, until none is pending"""
        fired = 0
        while (limit is None or fired < limit) and self.fire_next():
            fired += 1
        return fired

    def shutdown(self):
        for call in self.calls:
            call.cancel()
        self.calls = []

# trafficgen/throttle.py
import time


class SpeedThrottle:
    """
    Per-worker byte ceiling over fixed one-second windows.

    consume() is called after every chunk is read. Once the window's byte count
    reaches the limit the caller blocks until the next tick and the count starts
    over at zero, so unused budget never carries into the next window. Overshoot
    inside a window is at most one chunk.

    The tick source behaves like a single-slot ticker: a tick that fired while
    the caller was busy is delivered at once, any further missed ticks are dropped.
    """
    def __init__(self, limit_kbps: int, *, period: float = 1.0, clock=time.monotonic, sleep=time.sleep):
        self.limit_bytes = max(0, int(limit_kbps)) * 1024
        self.period = float(period)
        self._clock = clock
        self._sleep = sleep
        self.consumed = 0
        self.waits = 0
        self.reset()

    @property
    def enabled(self) -> bool:
        return self.limit_bytes > 0

    def reset(self) -> None:
        """Restart the tick source and the window; call once per response."""
        self.consumed = 0
        self._next_tick = self._clock() + self.period

    def consume(self, nbytes: int) -> bool:
        """Account for nbytes just read. Returns True if the call blocked."""
        self.consumed += nbytes
        if not self.enabled or self.consumed < self.limit_bytes:
            return False
        self._wait_for_tick()
        self.consumed = 0
        self.waits += 1
        return True

    def _wait_for_tick(self) -> None:
        now = self._clock()
        if now < self._next_tick:
            self._sleep(self._next_tick - now)
            self._next_tick += self.period
            return
        # tick already pending: take it now, skip ahead to the first boundary after now
        missed = int((now - self._next_tick) // self.period) + 1
        self._next_tick += missed * self.period

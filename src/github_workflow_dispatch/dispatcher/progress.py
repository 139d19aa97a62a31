"""Rate limiting for progress and retry messages in the polling loops."""

from __future__ import annotations

from collections.abc import Callable


class Throttle:
    """Allow an action at most once per `min_interval` seconds of `clock` time.

    The window starts at construction, so nothing is allowed until the first interval elapses.
    """

    def __init__(self, *, min_interval: float, clock: Callable[[], float]) -> None:
        self._min_interval = min_interval
        self._clock = clock
        self._last = clock()

    def ready(self) -> bool:
        return self._clock() - self._last > self._min_interval

    def mark(self) -> None:
        self._last = self._clock()

    def __call__(self) -> bool:
        """Return True and restart the window if the interval has elapsed."""

        if not self.ready():
            return False
        self.mark()
        return True


def format_elapsed(seconds: float) -> str:
    """Render elapsed seconds like `1h2m3s`, rounded to the second."""

    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"

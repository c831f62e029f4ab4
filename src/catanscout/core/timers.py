"""
Debounce timers.

Bursts of live-feed events should trigger one recomputation after things go quiet,
not one per event. `ThrottledTimer` implements cancel-and-reschedule: every call to
`schedule` drops the pending run (if any) and starts a fresh countdown.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class ThrottledTimer:
    """Run `callback` once, `delay_seconds` after the last `schedule` call."""

    callback: Callable[..., Any]
    delay_seconds: float = 0.1
    name: str = "throttled"
    _timer: threading.Timer | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if float(self.delay_seconds) < 0:
            raise ValueError("delay_seconds must be >= 0")

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(float(self.delay_seconds), self._fire, args=(args, kwargs))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> None:
        """Run a pending callback now (no-op when nothing is scheduled)."""
        with self._lock:
            timer = self._timer
            self._timer = None
        if timer is None:
            return
        timer.cancel()
        self.callback(*timer.args[0], **timer.args[1])

    def _fire(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        with self._lock:
            if self._timer is None or threading.current_thread() is not self._timer:
                return
            self._timer = None
        logger.debug("Running %s timer callback", self.name)
        self.callback(*args, **kwargs)

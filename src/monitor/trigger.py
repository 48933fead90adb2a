"""Minute-level periodic trigger with cron ``*/N * * * *`` semantics."""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def next_fire_time(after: datetime, interval_minutes: int) -> datetime:
    """Return the first minute strictly after ``after`` matching ``*/interval``.

    Matching minutes are 0, N, 2N, ... within each hour, so intervals of
    60 or more fire once an hour at minute 0, as cron does.
    """
    if interval_minutes < 1:
        raise ValueError(f"interval_minutes must be at least 1, got {interval_minutes}")

    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    while candidate.minute % interval_minutes != 0:
        candidate += timedelta(minutes=1)
    return candidate


class PeriodicTrigger:
    """Invokes a callback every N minutes on a background thread.

    Fire times are computed after each callback returns, so a slow
    callback never overlaps the next one; slots that pass while it runs
    are skipped.
    """

    def __init__(
        self,
        interval_minutes: int,
        callback: Callable[[], None],
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if interval_minutes < 1:
            raise ValueError(f"interval_minutes must be at least 1, got {interval_minutes}")
        self._interval_minutes = interval_minutes
        self._callback = callback
        self._clock = clock or datetime.now
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def cron_expression(self) -> str:
        return f"*/{self._interval_minutes} * * * *"

    def is_active(self) -> bool:
        return self._thread is not None and not self._cancelled.is_set()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name="periodic-trigger", daemon=True
        )
        self._thread.start()
        logger.debug("Periodic trigger started (%s)", self.cron_expression)

    def cancel(self) -> None:
        """Stop future firings and wait for an in-flight callback to finish."""
        self._cancelled.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self) -> None:
        while not self._cancelled.is_set():
            now = self._clock()
            delay = (next_fire_time(now, self._interval_minutes) - now).total_seconds()
            if self._cancelled.wait(max(delay, 0.0)):
                break
            try:
                self._callback()
            except Exception:
                logger.exception("Periodic trigger callback failed")

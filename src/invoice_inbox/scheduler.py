"""Fixed-interval scheduler that never overlaps cycles."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class CycleScheduler:
    """Run a job every ``interval`` seconds, measured from each start.

    The next run is armed only once the previous one has returned or
    raised. A run that overruns the interval is followed immediately by
    the next one; runs are never stacked or run concurrently.
    """

    def __init__(
        self,
        job: Callable[[], Any],
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        stop_event: threading.Event | None = None,
    ) -> None:
        if interval <= 0:
            msg = "interval must be greater than zero"
            raise ValueError(msg)
        self.job = job
        self.interval = interval
        self._clock = clock
        self._stop = stop_event or threading.Event()

    def stop(self) -> None:
        """Ask the loop to exit after the current run."""
        self._stop.set()

    def run(self, max_cycles: int | None = None) -> int:
        """Loop until stopped or ``max_cycles`` runs completed; return the run count."""
        completed = 0
        while not self._stop.is_set():
            started = self._clock()
            try:
                self.job()
            except Exception:
                logger.exception("Scheduled cycle failed")
            completed += 1

            if max_cycles is not None and completed >= max_cycles:
                break

            elapsed = self._clock() - started
            delay = max(0.0, self.interval - elapsed)
            if elapsed > self.interval:
                logger.warning(
                    "Cycle took %.1fs, longer than the %.1fs interval", elapsed, self.interval
                )
            # Event.wait doubles as an interruptible sleep.
            if self._stop.wait(delay):
                break
        return completed

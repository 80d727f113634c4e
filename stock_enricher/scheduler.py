"""Scheduler for the recurring enrichment cycle.

No external scheduler library is required; uses stdlib ``threading`` and
``signal`` only.

Typical usage via the CLI::

    stock-enricher start-scheduler

Or import directly::

    from stock_enricher.scheduler import EnrichmentScheduler
    scheduler = EnrichmentScheduler(orchestrator.run_cycle, interval_hours=24)
    scheduler.start()  # blocks until Ctrl-C

Timing model:
  - One cycle runs immediately on start (unless ``run_on_start=False``).
  - Later cycles fire on interval boundaries measured from the start time:
    ``start + n * interval``.
  - Cycles never overlap.  If a cycle overruns one or more boundaries those
    ticks are skipped (no catch-up) and the next cycle waits for the next
    boundary.
  - ``stop()`` takes effect between cycles; an in-flight cycle finishes.

A cycle that raises is logged and does not stop the scheduler.
"""

from __future__ import annotations

import logging
import math
import platform
import signal
import threading
import time
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)


class EnrichmentScheduler:
    """Runs ``run_cycle`` once on start and then every ``interval_hours``.

    Parameters
    ----------
    run_cycle:
        Zero-argument callable executing one cycle (typically
        ``EnrichmentOrchestrator.run_cycle``).
    interval_hours:
        Hours between cycle start boundaries.  Defaults to 24.
    run_on_start:
        When *False*, the first cycle waits for the first boundary.
    clock:
        Monotonic clock in seconds; injectable for tests.
    """

    def __init__(
        self,
        run_cycle: Callable[[], Any],
        interval_hours: float = 24.0,
        run_on_start: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_hours <= 0:
            raise ValueError(f"interval_hours must be positive, got {interval_hours}.")
        self.run_cycle = run_cycle
        self.interval_seconds = interval_hours * 3600.0
        self.run_on_start = run_on_start
        self._clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.cycles_run = 0
        self.ticks_skipped = 0

    # ── Control ───────────────────────────────────────────────────────────────

    def stop(self) -> None:
        """Ask the loop to exit; returns immediately."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        """Run in the calling thread.  Blocks until Ctrl-C (or SIGTERM on Linux/macOS)."""

        def _shutdown(signum, frame):  # noqa: ANN001
            log.info("Signal %d received, stopping scheduler.", signum)
            self.stop()

        signal.signal(signal.SIGINT, _shutdown)
        if platform.system() != "Windows":
            signal.signal(signal.SIGTERM, _shutdown)

        self.run_forever()

    def start_background(self) -> threading.Thread:
        """Run the loop on a daemon thread and return it."""
        self._thread = threading.Thread(
            target=self.run_forever, name="enrichment-scheduler", daemon=True
        )
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    # ── Main loop ─────────────────────────────────────────────────────────────

    def run_forever(self) -> None:
        """Cycle loop; returns once ``stop()`` has been called."""
        started = self._clock()
        log.info(
            "Scheduler started. interval=%.2fh run_on_start=%s",
            self.interval_seconds / 3600.0,
            self.run_on_start,
        )

        if self.run_on_start and not self.stopped:
            self._run_once()

        last_tick = 0
        while not self.stopped:
            elapsed = self._clock() - started
            # Event.wait may wake marginally early; never re-run a tick.
            tick = max(math.floor(elapsed / self.interval_seconds) + 1, last_tick + 1)
            if tick > last_tick + 1:
                skipped = tick - last_tick - 1
                self.ticks_skipped += skipped
                log.warning(
                    "Previous cycle overran the interval; skipping %d tick(s).", skipped
                )
            next_at = started + tick * self.interval_seconds
            delay = max(0.0, next_at - self._clock())
            log.info("Next enrichment cycle in %.0fs.", delay)

            if self._stop_event.wait(delay):
                break
            last_tick = tick
            self._run_once()

        log.info("Scheduler stopped after %d cycle(s).", self.cycles_run)

    def _run_once(self) -> None:
        self.cycles_run += 1
        try:
            self.run_cycle()
        except Exception as exc:
            log.error("Enrichment cycle raised unexpectedly: %s", exc, exc_info=True)

"""
Background job scheduler.

Runs periodic maintenance tasks (the scheduled-publish sweep and the purge of
stale unverified accounts) on daemon threads inside the API process. Each task
polls at its own interval; a failing run is logged and the loop keeps going.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodicTask:
    name: str
    interval_seconds: float
    run: Callable[[], Any]


class BackgroundScheduler:
    """Polling scheduler with one thread per task."""

    def __init__(self, tasks: list[PeriodicTask]) -> None:
        self._tasks = {t.name: t for t in tasks}
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._running = False

    def start(self) -> None:
        """Start the background loops."""
        if self._running:
            return

        self._stop_event.clear()
        for task in self._tasks.values():
            thread = threading.Thread(
                target=self._poll_loop, args=(task,), name=f"siteforge-{task.name}", daemon=True
            )
            thread.start()
            self._threads.append(thread)
            logger.info("Scheduler task %s started (interval: %.1fs)", task.name, task.interval_seconds)
        self._running = True

    def stop(self) -> None:
        """Stop all loops gracefully."""
        if not self._running:
            return

        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=5.0)
        self._threads.clear()
        self._running = False
        logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def _poll_loop(self, task: PeriodicTask) -> None:
        while not self._stop_event.wait(timeout=task.interval_seconds):
            try:
                task.run()
            except Exception:
                logger.exception("Error in scheduler task %s", task.name)

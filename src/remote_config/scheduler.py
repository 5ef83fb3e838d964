"""Periodic background task on an APScheduler background scheduler."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``action`` every ``interval_seconds`` in the background until stopped.

    At most one run is active at a time; runs that fall due while one is still
    going are coalesced. The action's exceptions are logged and do not end the
    schedule.
    """

    def __init__(
        self,
        interval_seconds: float,
        action: Callable[[], object],
        *,
        run_immediately: bool = True,
        name: str = "remote-config-poller",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._interval_seconds = interval_seconds
        self._action = action
        self._run_immediately = run_immediately
        self._name = name
        self._scheduler = BackgroundScheduler(timezone=timezone.utc)
        self._lock = threading.Lock()
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        with self._lock:
            if self._stopped or self._scheduler.running:
                return
            job_options: dict[str, object] = {}
            if self._run_immediately:
                job_options["next_run_time"] = datetime.now(timezone.utc)
            self._scheduler.add_job(
                self._run,
                IntervalTrigger(seconds=self._interval_seconds, timezone=timezone.utc),
                id=self._name,
                name=self._name,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=None,
                **job_options,
            )
            self._scheduler.start()
            logger.debug("Started %s (every %ss)", self._name, self._interval_seconds)

    def stop(self, wait: bool = False) -> None:
        """Shut the scheduler down. Idempotent; a stopped task cannot be restarted.

        With ``wait`` the call blocks until a run in progress has finished.
        """
        with self._lock:
            self._stopped = True
            if not self._scheduler.running:
                return
            self._scheduler.shutdown(wait=wait)
        logger.debug("Stopped %s", self._name)

    def _run(self) -> None:
        try:
            self._action()
        except Exception:
            logger.exception("Scheduled config refresh raised")

"""
Background sweeper that purges expired guest strips.

Runs one pass at startup and then one per interval. A pass is never
interrupted; stopping only takes effect between passes.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from photobooth.db import DbError
from photobooth.strips import StripService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 3600.0


class ExpirationSweeper:
    def __init__(
        self,
        service: StripService,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ):
        self.service = service
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def sweep_once(self) -> int:
        """
        Delete every guest strip that has expired. Returns rows deleted.
        """
        now = self.service.clock()
        try:
            expired = self.service.db.list_expired_guest_strips(now)
        except DbError:
            logger.exception("Sweep aborted: failed to list expired guest strips")
            return 0

        if not expired:
            logger.debug("Sweep: no expired guest strips")
            return 0

        logger.info("Found %d expired guest strips to clean up", len(expired))
        deleted = 0
        for strip in expired:
            try:
                self.service.purge(strip, operation="sweep")
            except DbError:
                logger.exception("Sweep: failed to delete row id=%s", strip.id)
                continue
            deleted += 1
            logger.info("Cleaned up expired strip %s", strip.id)
        return deleted

    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        stop_event = stop_event or self._stop_event
        while not stop_event.is_set():
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Sweep pass failed")
            stop_event.wait(self.interval_seconds)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            args=(self._stop_event,),
            name="expiration-sweeper",
            daemon=True,
        )
        self._thread.start()
        logger.info("Expiration sweeper started (interval=%ss)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

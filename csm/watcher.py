"""Watcher — re-runs discovery on an interval and hands results to a callback."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Optional

from csm.models import Session
from csm.session.discovery import discover

logger = logging.getLogger(__name__)


class Watcher:
    """
    Polls the log store for session changes.

    Discovery runs once immediately, then every ``interval`` seconds until the
    stop event is set. A failed discovery is logged and that tick skipped.
    """

    def __init__(
        self,
        interval: float = 2.0,
        discover_fn: Optional[Callable[[], list[Session]]] = None,
    ):
        self.interval = interval
        self.discover_fn = discover_fn or discover
        self.stop_event = threading.Event()

    def poll(self) -> Optional[list[Session]]:
        """Run discovery once. Returns None if it failed."""
        try:
            return self.discover_fn()
        except OSError as e:
            logger.warning("Discovery failed: %s", e)
            return None

    def watch(self, callback: Callable[[list[Session]], None]) -> None:
        """Block, calling ``callback`` with each fresh session list, until stopped."""
        while not self.stop_event.is_set():
            sessions = self.poll()
            if sessions is not None:
                callback(sessions)
            self.stop_event.wait(self.interval)

    def stop(self) -> None:
        self.stop_event.set()

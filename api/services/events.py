# SPDX-License-Identifier: Apache-2.0

"""
Observer interface for registry state changes.

Observers are notified after a transition has committed and outside the
service lock. Committed events are queued while the lock is still held and
delivered from that queue, so observers see them in commit order even when
the thread that delivers is not the one that committed. Delivery is
fire-and-forget: a failing observer is logged and never affects the operation
or the other observers.
"""

from collections import deque
from typing import Deque, List, Optional, Tuple
import logging
import threading

from models.entities import TouristRecord, LocationEntry, EmergencyAlert

logger = logging.getLogger(__name__)


class SafetyObserver:
    """Base observer; override the hooks of interest."""

    def on_registered(self, record: TouristRecord, principal: str) -> None:
        pass

    def on_location_updated(self, record: TouristRecord, entry: LocationEntry) -> None:
        pass

    def on_tracking_changed(self, record: TouristRecord, enabled: bool) -> None:
        pass

    def on_status_changed(self, record: TouristRecord, previous_status: str,
                          principal: Optional[str]) -> None:
        pass

    def on_alert_raised(self, record: TouristRecord, alert: EmergencyAlert,
                        principal: Optional[str]) -> None:
        pass

    def on_alert_resolved(self, record: TouristRecord, alert: EmergencyAlert) -> None:
        pass

    def on_capability_changed(self, principal: str, capability: str, granted: bool,
                              changed_by: str) -> None:
        pass


class EventDispatcher:
    """Fans notifications out to registered observers."""

    def __init__(self, observers: Optional[List[SafetyObserver]] = None):
        self._observers: List[SafetyObserver] = list(observers or [])
        self._queue: Deque[Tuple[str, tuple]] = deque()
        self._delivering = threading.Lock()

    def subscribe(self, observer: SafetyObserver) -> None:
        """Register an observer."""
        if observer not in self._observers:
            self._observers.append(observer)

    def emit(self, hook: str, *args) -> None:
        """Call `hook` on every observer, logging failures."""
        for observer in list(self._observers):
            try:
                getattr(observer, hook)(*args)
            except Exception as e:
                logger.error(
                    f"Observer {observer.__class__.__name__} failed in {hook}: {str(e)}",
                    extra={"observer": observer.__class__.__name__, "hook": hook},
                    exc_info=True
                )

    def enqueue(self, events: List[Tuple[str, tuple]]) -> None:
        """Queue a committed batch. Callers hold the service lock, so batches queue in commit order."""
        self._queue.extend(events)

    def deliver(self) -> None:
        """
        Drain queued events in order.

        Only one thread drains at a time. A thread that finds another one
        draining returns at once; its events are delivered by that thread.
        """
        while self._queue:
            if not self._delivering.acquire(blocking=False):
                return
            try:
                while self._queue:
                    hook, args = self._queue.popleft()
                    self.emit(hook, *args)
            finally:
                self._delivering.release()

"""
Host power-event sources.

A source delivers two parameterless signals, "about to sleep" and "woke up",
on whatever thread the host uses. SleepWakeMonitor is the only consumer.
"""
import logging
import sys
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

PowerCallback = Callable[[], None]


class PowerEventSource(ABC):
    """Abstract subscription to host sleep/wake notifications"""

    available = True

    @abstractmethod
    def subscribe(self, on_sleep: PowerCallback, on_wake: PowerCallback):
        """Begin delivering notifications to the two callbacks"""

    @abstractmethod
    def unsubscribe(self):
        """Stop delivering notifications"""


class NullPowerEventSource(PowerEventSource):
    """Source for hosts without power notifications: never fires"""

    available = False

    def subscribe(self, on_sleep: PowerCallback, on_wake: PowerCallback):
        logger.debug("No power-event source on this platform; sleep/wake coordination disabled")

    def unsubscribe(self):
        pass


class AppKitPowerEventSource(PowerEventSource):
    """macOS NSWorkspace will-sleep / did-wake notifications via PyObjC

    Observers are registered on the shared workspace notification center.
    A dedicated thread spins an NSRunLoop so notifications are delivered
    even though the process main thread runs the asyncio loop.
    """

    RUN_LOOP_INTERVAL = 0.5

    def __init__(self):
        from AppKit import NSWorkspace  # type: ignore[import-not-found]
        self._workspace = NSWorkspace
        self._observers: List[object] = []
        self._thread: Optional[threading.Thread] = None
        self._running = threading.Event()

    def subscribe(self, on_sleep: PowerCallback, on_wake: PowerCallback):
        from AppKit import (  # type: ignore[import-not-found]
            NSWorkspaceDidWakeNotification,
            NSWorkspaceWillSleepNotification,
        )
        from Foundation import NSOperationQueue  # type: ignore[import-not-found]

        center = self._workspace.sharedWorkspace().notificationCenter()
        queue = NSOperationQueue.alloc().init()
        self._observers = [
            center.addObserverForName_object_queue_usingBlock_(
                NSWorkspaceWillSleepNotification, None, queue, lambda _note: on_sleep()
            ),
            center.addObserverForName_object_queue_usingBlock_(
                NSWorkspaceDidWakeNotification, None, queue, lambda _note: on_wake()
            ),
        ]
        self._running.set()
        self._thread = threading.Thread(target=self._pump_run_loop, name="power-events", daemon=True)
        self._thread.start()

    def unsubscribe(self):
        center = self._workspace.sharedWorkspace().notificationCenter()
        for observer in self._observers:
            center.removeObserver_(observer)
        self._observers = []
        self._running.clear()
        if self._thread:
            self._thread.join(timeout=self.RUN_LOOP_INTERVAL * 4)
            self._thread = None

    def _pump_run_loop(self):
        from Foundation import NSDate, NSRunLoop  # type: ignore[import-not-found]

        run_loop = NSRunLoop.currentRunLoop()
        while self._running.is_set():
            run_loop.runUntilDate_(NSDate.dateWithTimeIntervalSinceNow_(self.RUN_LOOP_INTERVAL))


def default_power_event_source() -> PowerEventSource:
    """Pick the native source for this host, or the no-op source"""
    if sys.platform != "darwin":
        return NullPowerEventSource()
    try:
        return AppKitPowerEventSource()
    except ImportError:
        logger.debug("PyObjC not available - sleep/wake notifications disabled")
        return NullPowerEventSource()

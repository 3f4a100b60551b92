# Copyright (c) 2024 RAG-KB Contributors
# SPDX-License-Identifier: MIT

"""Sleep/wake monitor.

Forwards host power transitions to two async callbacks. Each notification
schedules exactly one callback on the event loop captured at start() and
returns immediately; the monitor never waits for or retries a callback.
"""
import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Awaitable, Callable, Optional

from power.event_sources import PowerEventSource, default_power_event_source

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[None]]


class SleepWakeMonitor:
    """Bridges a PowerEventSource to async on_sleep / on_wake callbacks"""

    def __init__(self, on_sleep: AsyncCallback, on_wake: AsyncCallback,
                 source: Optional[PowerEventSource] = None):
        self._on_sleep = on_sleep
        self._on_wake = on_wake
        self._source = source or default_power_event_source()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()

    @property
    def is_subscribed(self) -> bool:
        return self._loop is not None

    def start(self):
        """Subscribe to the host source; no-op if already subscribed

        Must be called from a running event loop.
        """
        with self._lock:
            if self._loop is not None:
                return
            self._loop = asyncio.get_running_loop()
            self._source.subscribe(self._handle_sleep, self._handle_wake)
        if self._source.available:
            logger.info("Sleep/wake monitor started")

    def stop(self):
        """Unsubscribe; safe to call when not started"""
        with self._lock:
            if self._loop is None:
                return
            self._source.unsubscribe()
            self._loop = None
        logger.info("Sleep/wake monitor stopped")

    def _handle_sleep(self):
        logger.info("System is about to sleep; pausing background work")
        self._schedule(self._on_sleep, "sleep")

    def _handle_wake(self):
        logger.info("System woke up; resuming background work")
        self._schedule(self._on_wake, "wake")

    def _schedule(self, callback: AsyncCallback, label: str):
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(callback(), loop)
        future.add_done_callback(lambda f: self._log_failure(f, label))

    @staticmethod
    def _log_failure(future: Future, label: str):
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("%s callback failed: %s", label.capitalize(), error)

# Copyright (c) 2024 RAG-KB Contributors
# SPDX-License-Identifier: MIT

"""Catalogue queue for backfill candidates.

Backfill producers push discovered paths tagged with the job that found
them; the ingest loop drains the queue one item at a time. Pausing the
queue stops draining without dropping anything already queued.
"""

import heapq
import itertools
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Dict, Iterable, List, Optional


class Priority(IntEnum):
    """Lower value drains first"""
    HIGH = 1
    NORMAL = 2
    LOW = 3


@dataclass(order=True)
class QueueItem:
    """A discovered path waiting for ingest; ordered by priority, then arrival"""
    priority: int
    sequence: int
    path: Path = field(compare=False)
    job_id: str = field(compare=False)


class IndexingQueue:
    """Heap of QueueItems keyed by path

    A path is held at most once while it waits; once taken it may be
    queued again. All state sits behind one condition so producers on
    worker threads and the ingest loop see a consistent view.
    """

    def __init__(self):
        self._heap: List[QueueItem] = []
        self._waiting: Dict[Path, QueueItem] = {}
        self._arrivals = itertools.count(1)
        self._paused = False
        self._ready = threading.Condition()

    def add(self, path: Path, job_id: str, priority: Priority = Priority.NORMAL) -> bool:
        """Queue a path; False when it is already waiting"""
        with self._ready:
            if path in self._waiting:
                return False
            item = QueueItem(int(priority), next(self._arrivals), path, job_id)
            heapq.heappush(self._heap, item)
            self._waiting[path] = item
            self._ready.notify()
            return True

    def add_many(self, paths: Iterable[Path], job_id: str,
                 priority: Priority = Priority.NORMAL) -> int:
        """Queue several paths; returns how many were newly queued"""
        return sum(1 for path in paths if self.add(path, job_id, priority))

    def get(self, timeout: float = 0.5) -> Optional[QueueItem]:
        """Take the next item, waiting up to timeout

        None when the queue is paused or stays empty.
        """
        with self._ready:
            self._ready.wait_for(lambda: self._heap or self._paused, timeout=timeout)
            if self._paused or not self._heap:
                return None
            item = heapq.heappop(self._heap)
            del self._waiting[item.path]
            return item

    def get_nowait(self) -> Optional[QueueItem]:
        return self.get(timeout=0)

    def discard_job(self, job_id: str) -> int:
        """Drop every waiting item queued by job_id; returns how many"""
        with self._ready:
            kept = [item for item in self._heap if item.job_id != job_id]
            dropped = len(self._heap) - len(kept)
            if dropped:
                heapq.heapify(kept)
                self._heap = kept
                self._waiting = {item.path: item for item in kept}
            return dropped

    def pause(self):
        with self._ready:
            self._paused = True
            self._ready.notify_all()

    def resume(self):
        with self._ready:
            self._paused = False
            self._ready.notify_all()

    def is_paused(self) -> bool:
        with self._ready:
            return self._paused

    def size(self) -> int:
        with self._ready:
            return len(self._heap)

    def is_empty(self) -> bool:
        return self.size() == 0

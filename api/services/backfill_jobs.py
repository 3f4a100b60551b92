"""
Backfill job bookkeeping.

One job per enabled file scope root. Each job tracks its own progress
counters and a resume gate that producers wait on while the job is
paused.
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from models import BackfillJob, ProgressState, SourceType

PENDING = "pending"
RUNNING = "running"
PAUSED = "paused"
COMPLETED = "completed"
FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobRecord:
    """Mutable state behind one BackfillJob"""
    id: str
    scope_label: str
    source_type: SourceType = SourceType.FILE
    status: str = PENDING
    items_processed: int = 0
    items_skipped: int = 0
    estimated_total: int = 0
    resume_token: Optional[str] = None
    started_at: Optional[float] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    gate: asyncio.Event = field(default_factory=asyncio.Event)

    def __post_init__(self):
        self.gate.set()

    def touch(self, status: Optional[str] = None):
        if status is not None:
            self.status = status
        self.updated_at = _utcnow()

    @property
    def percent_complete(self) -> float:
        if self.status == COMPLETED:
            return 100.0
        if self.estimated_total <= 0:
            return 0.0
        done = self.items_processed + self.items_skipped
        return min(100.0, round(100.0 * done / self.estimated_total, 1))

    @property
    def eta_seconds(self) -> Optional[int]:
        if self.status != RUNNING or self.started_at is None or self.items_processed == 0:
            return None
        elapsed = time.monotonic() - self.started_at
        remaining = max(0, self.estimated_total - self.items_processed - self.items_skipped)
        return int(elapsed / self.items_processed * remaining)

    def to_job(self) -> BackfillJob:
        return BackfillJob(
            id=self.id,
            source_type=self.source_type,
            scope_label=self.scope_label,
            status=self.status,
            resume_token=self.resume_token,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_progress(self) -> ProgressState:
        return ProgressState(
            source_type=self.source_type,
            scope_label=self.scope_label,
            status=self.status,
            items_processed=self.items_processed,
            items_skipped=self.items_skipped,
            estimated_total=self.estimated_total,
            percent_complete=self.percent_complete,
            eta_seconds=self.eta_seconds,
            checkpoint_updated_at=self.updated_at,
        )


def job_id_for(source_type: SourceType, scope_label: str) -> str:
    return f"{source_type.value}:{scope_label}"


class BackfillJobRegistry:
    """Ordered registry of backfill jobs keyed by id"""

    def __init__(self):
        self._jobs: Dict[str, JobRecord] = {}

    def ensure(self, scope_label: str, source_type: SourceType = SourceType.FILE) -> JobRecord:
        """Get the job for a scope, creating it if needed"""
        job_id = job_id_for(source_type, scope_label)
        record = self._jobs.get(job_id)
        if record is None:
            record = JobRecord(id=job_id, scope_label=scope_label, source_type=source_type)
            self._jobs[job_id] = record
        return record

    def get(self, job_id: str) -> Optional[JobRecord]:
        return self._jobs.get(job_id)

    def retain(self, job_ids: List[str]):
        """Drop jobs whose scope is no longer configured

        A dropped job's gate is opened so a pass waiting on it can move on.
        """
        for job_id in list(self._jobs):
            if job_id not in job_ids:
                self._jobs.pop(job_id).gate.set()

    def is_current(self, record: JobRecord) -> bool:
        """True while record is still the registered job for its id"""
        return self._jobs.get(record.id) is record

    def pause(self, job_id: str) -> bool:
        """Close the job's gate; unknown ids are ignored"""
        record = self.get(job_id)
        if record is None:
            return False
        record.gate.clear()
        if record.status in (PENDING, RUNNING):
            record.touch(PAUSED)
        return True

    def resume(self, job_id: str) -> bool:
        record = self.get(job_id)
        if record is None:
            return False
        record.gate.set()
        if record.status == PAUSED:
            record.touch(RUNNING if record.started_at is not None else PENDING)
        return True

    def records(self) -> List[JobRecord]:
        return list(self._jobs.values())

    def jobs(self) -> List[BackfillJob]:
        return [record.to_job() for record in self._jobs.values()]

    def progress(self) -> List[ProgressState]:
        return [record.to_progress() for record in self._jobs.values()]

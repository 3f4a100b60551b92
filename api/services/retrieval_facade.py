"""Retrieval service facade interface.

The daemon consumes this interface and never implements ranking, indexing
decisions or job-state computation itself. Every method may suspend; the
daemon makes no ordering assumptions between calls.

Implementations must make pause_for_system_sleep / resume_after_system_wake
idempotent: sleep/wake notifications can repeat, overlap, or arrive while a
previous transition is still running.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from models import (
    BackfillJob,
    ConfigureScopesRequest,
    ContextPack,
    CreateContextPackRequest,
    Health,
    IndexStats,
    ProgressState,
    QueueActivity,
    StateSnapshot,
    Suggestion,
    SuggestRequest,
    SuggestResponse,
)


class RetrievalServiceFacade(ABC):
    """Abstract background retrieval/indexing service"""

    # === Lifecycle ===

    @abstractmethod
    async def start(self):
        """Start background work"""

    @abstractmethod
    async def stop(self):
        """Stop background work"""

    @abstractmethod
    async def pause_for_system_sleep(self):
        """Suspend background work before the host sleeps"""

    @abstractmethod
    async def resume_after_system_wake(self):
        """Resume background work after the host wakes"""

    # === Queries ===

    @abstractmethod
    async def health(self) -> Health:
        pass

    @abstractmethod
    async def suggest(self, request: SuggestRequest) -> SuggestResponse:
        pass

    @abstractmethod
    async def create_context_pack(self, request: CreateContextPackRequest) -> ContextPack:
        pass

    @abstractmethod
    async def preview(self, item_id: str) -> Optional[Suggestion]:
        pass

    @abstractmethod
    async def state_snapshot(self) -> StateSnapshot:
        pass

    @abstractmethod
    async def indexing_progress(self) -> List[ProgressState]:
        pass

    @abstractmethod
    async def index_stats(self) -> IndexStats:
        pass

    @abstractmethod
    async def queue_activity(self) -> QueueActivity:
        pass

    # === Backfill control ===

    @abstractmethod
    async def list_backfill_jobs(self) -> List[BackfillJob]:
        pass

    @abstractmethod
    async def pause_backfill(self, job_id: str):
        pass

    @abstractmethod
    async def resume_backfill(self, job_id: str):
        pass

    @abstractmethod
    async def configure_scopes(self, request: ConfigureScopesRequest):
        pass

    @abstractmethod
    async def trigger_backfill(self):
        pass

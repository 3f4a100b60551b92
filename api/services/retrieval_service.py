# Copyright (c) 2024 RAG-KB Contributors
# SPDX-License-Identifier: MIT

"""
Default in-process retrieval service.

Catalogues file metadata under the configured scopes and answers
name/path suggestions from that catalogue. Background work is two
asyncio tasks: a backfill producer that walks each scope root in a worker
thread and feeds the IndexingQueue, and an ingest loop that drains the
queue into the DocumentCatalog.

Lifecycle transitions are serialized by one asyncio.Lock; the running and
sleep flags make repeated or overlapping transitions no-ops.
"""
import asyncio
import logging
import time
import uuid
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from config import DAEMON_VERSION, DaemonConfiguration
from models import (
    BackfillJob,
    ConfigureScopesRequest,
    ContextPack,
    ContextPackItem,
    CreateContextPackRequest,
    Health,
    IndexedSourceStats,
    IndexStats,
    InjectionMode,
    OperationPhase,
    ProgressState,
    QueueActivity,
    QueueSourceActivity,
    SourceScope,
    SourceType,
    StateSnapshot,
    Suggestion,
    SuggestRequest,
    SuggestResponse,
)
from services import backfill_jobs
from services.backfill_jobs import BackfillJobRegistry
from services.document_catalog import DocumentCatalog, describe_path
from services.file_filter import FileFilterPolicy
from services.file_walker import FileWalker
from services.indexing_queue import IndexingQueue, QueueItem
from services.retrieval_facade import RetrievalServiceFacade
from storage.filenames import mime_type_for
from value_objects import CatalogDocument

logger = logging.getLogger(__name__)

SUGGEST_CACHE_TTL_SECONDS = 1.5
IDLE_POLL_SECONDS = 0.2
PREVIEW_BYTES = 2048
REMEMBERED_QUERIES = 64

_TEXT_MIME_TYPES = {"application/json", "application/xml"}


def _read_excerpt(path: Path, limit: int = PREVIEW_BYTES) -> Optional[str]:
    """Leading text of a text-like file, or None for binaries and unreadable files"""
    mime_type = mime_type_for(path.name)
    if not (mime_type.startswith("text/") or mime_type in _TEXT_MIME_TYPES):
        return None
    try:
        with open(path, "rb") as f:
            return f.read(limit).decode("utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"Preview read failed for {path}: {e}")
        return None


class RetrievalService(RetrievalServiceFacade):
    """File-metadata catalogue behind the retrieval facade"""

    def __init__(self, configuration: DaemonConfiguration):
        self.config = configuration
        self.catalog = DocumentCatalog()
        self.queue = IndexingQueue()
        self.jobs = BackfillJobRegistry()
        self._scopes: List[SourceScope] = [
            SourceScope(source_type=SourceType.FILE,
                        include_paths_or_handles=list(configuration.startup_allowlist_roots))
        ]
        self._scope_audit: List[dict] = []
        self._lifecycle_lock = asyncio.Lock()
        self._running = False
        self._sleep_paused = False
        self._startup_backfill_completed = False
        self._backfill_task: Optional[asyncio.Task] = None
        self._rescan_requested = False
        self._ingest_task: Optional[asyncio.Task] = None
        self._in_flight = 0
        self._last_error: Optional[str] = None
        self._operation = OperationPhase.IDLE
        self._current_item_path: Optional[str] = None
        self._suggest_cache: Dict[tuple, Tuple[float, SuggestResponse]] = {}
        self._last_suggestions: "OrderedDict[str, List[Suggestion]]" = OrderedDict()
        self._sync_jobs()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_sleep_paused(self) -> bool:
        return self._sleep_paused

    @property
    def scope_audit(self) -> List[dict]:
        return list(self._scope_audit)

    # === Lifecycle ===

    async def start(self):
        async with self._lifecycle_lock:
            if self._running:
                if self._sleep_paused:
                    self._sleep_paused = False
                    self._start_workers(backfill=not self._startup_backfill_completed)
                return
            self._running = True
            self._start_workers(backfill=True)
            logger.info("Retrieval service started")

    async def stop(self):
        async with self._lifecycle_lock:
            if not self._running:
                return
            await self._stop_workers()
            self._running = False
            self._sleep_paused = False
            logger.info("Retrieval service stopped")

    async def pause_for_system_sleep(self):
        async with self._lifecycle_lock:
            if not self._running or self._sleep_paused:
                return
            self._sleep_paused = True
            await self._stop_workers()
            logger.info("Background work paused for system sleep")

    async def resume_after_system_wake(self):
        async with self._lifecycle_lock:
            if not self._running or not self._sleep_paused:
                return
            self._sleep_paused = False
            self._start_workers(backfill=not self._startup_backfill_completed)
            logger.info("Background work resumed after system wake")

    def _start_workers(self, backfill: bool):
        self.queue.resume()
        self._ingest_task = asyncio.create_task(self._ingest_loop())
        if backfill:
            self._schedule_backfill()

    async def _stop_workers(self):
        self.queue.pause()
        tasks = [task for task in (self._backfill_task, self._ingest_task) if task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._backfill_task = None
        self._ingest_task = None
        for record in self.jobs.records():
            if record.status == backfill_jobs.RUNNING:
                record.touch(backfill_jobs.PENDING)
        self._set_operation(OperationPhase.IDLE)

    def _schedule_backfill(self):
        if self._backfill_task is not None and not self._backfill_task.done():
            return
        self._backfill_task = asyncio.create_task(self._run_backfill())

    # === Background work ===

    async def _run_backfill(self):
        try:
            self._rescan_requested = True
            while self._rescan_requested:
                self._rescan_requested = False
                for scope in self._file_scopes():
                    for root in scope.include_paths_or_handles:
                        await self._backfill_root(root, scope.exclude_paths_or_handles)
            self._startup_backfill_completed = True
            logger.info(f"Backfill complete: {self.catalog.count()} documents catalogued")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._last_error = str(e)
            logger.error(f"Backfill failed: {e}")
        finally:
            self._set_operation(OperationPhase.IDLE)

    async def _backfill_root(self, root: str, excludes: List[str]):
        record = self.jobs.get(backfill_jobs.job_id_for(SourceType.FILE, root))
        if record is None:
            logger.debug(f"Skipping backfill of removed scope {root}")
            return
        await record.gate.wait()
        if not self.jobs.is_current(record):
            return

        record.items_processed = 0
        record.items_skipped = 0
        record.resume_token = None
        record.started_at = time.monotonic()
        record.touch(backfill_jobs.RUNNING)
        self._set_operation(OperationPhase.SCANNING, root)

        walker = FileWalker(Path(root), FileFilterPolicy(excludes))
        try:
            paths = await asyncio.to_thread(lambda: list(walker.walk()))
        except OSError as e:
            record.touch(backfill_jobs.FAILED)
            self._last_error = f"{root}: {e}"
            logger.warning(f"Backfill walk failed for {root}: {e}")
            return

        record.estimated_total = len(paths)
        self._set_operation(OperationPhase.BACKFILLING, root)
        batch_size = max(1, self.config.queue_batch_size)
        for offset in range(0, len(paths), batch_size):
            await record.gate.wait()
            if not self.jobs.is_current(record):
                logger.info(f"Backfill of {root} stopped: scope removed")
                return
            batch = paths[offset:offset + batch_size]
            record.items_skipped += len(batch) - self.queue.add_many(batch, record.id)
            record.resume_token = str(offset + len(batch))
            record.touch(backfill_jobs.RUNNING)
            await asyncio.sleep(0)

        record.touch(backfill_jobs.COMPLETED)
        logger.info(f"Queued {len(paths)} files from {root}")

    async def _ingest_loop(self):
        while True:
            item = self.queue.get_nowait()
            if item is None:
                await asyncio.sleep(IDLE_POLL_SECONDS)
                continue
            await self._ingest(item)

    async def _ingest(self, item: QueueItem):
        self._in_flight += 1
        self._set_operation(OperationPhase.INGESTING, str(item.path))
        try:
            document = await asyncio.to_thread(describe_path, item.path)
        except asyncio.CancelledError:
            self.queue.add(item.path, item.job_id)
            raise
        finally:
            self._in_flight -= 1

        self._record_ingest(item, document)
        if self.queue.is_empty():
            self._set_operation(OperationPhase.IDLE)

    def _record_ingest(self, item: QueueItem, document: Optional[CatalogDocument]):
        record = self.jobs.get(item.job_id)
        if record is None:
            # scope removed while the file was in flight
            return
        if document is None:
            record.items_skipped += 1
            return
        self.catalog.add(document)
        record.items_processed += 1
        record.touch()

    def _set_operation(self, phase: OperationPhase, item_path: Optional[str] = None):
        self._operation = phase
        self._current_item_path = item_path

    # === Queries ===

    async def health(self) -> Health:
        active = self._operation is not OperationPhase.IDLE
        return Health(
            daemon_version=DAEMON_VERSION,
            running=self._running,
            paused_for_sleep=self._sleep_paused,
            queue_depth=self.queue.size(),
            in_flight_count=self._in_flight,
            last_error=self._last_error,
            current_operation=self._operation,
            current_operation_source_type=SourceType.FILE if active else None,
            current_item_path=self._current_item_path,
        )

    async def suggest(self, request: SuggestRequest) -> SuggestResponse:
        started = time.perf_counter()
        key = self._cache_key(request)
        now = time.monotonic()

        cached = self._suggest_cache.get(key)
        if cached is not None and now - cached[0] < SUGGEST_CACHE_TTL_SECONDS:
            self._remember_suggestions(request.query, cached[1].suggestions)
            return cached[1]

        tokens = request.query.lower().split()
        if request.source_filters and SourceType.FILE not in request.source_filters:
            scored = []
        else:
            scored = self.catalog.search(tokens)

        suggestions = [self._suggestion_for(document, score, tokens)
                       for score, document in scored[:request.limit]]
        response = SuggestResponse(
            suggestions=suggestions,
            partial=not self._startup_backfill_completed,
            total_candidate_count=len(scored),
            latency_ms=int((time.perf_counter() - started) * 1000),
        )

        self._prune_cache(now)
        self._suggest_cache[key] = (now, response)
        self._remember_suggestions(request.query, suggestions)
        return response

    def _cache_key(self, request: SuggestRequest) -> tuple:
        filters = None
        if request.source_filters:
            filters = tuple(sorted(source.value for source in request.source_filters))
        return (request.query, request.typing_mode, request.limit, filters,
                request.include_cold_partition_fallback)

    def _prune_cache(self, now: float):
        expired = [key for key, (stamp, _) in self._suggest_cache.items()
                   if now - stamp >= SUGGEST_CACHE_TTL_SECONDS]
        for key in expired:
            del self._suggest_cache[key]

    def _remember_suggestions(self, query: str, suggestions: List[Suggestion]):
        """Keep suggestions for the most recent queries only"""
        self._last_suggestions[query] = suggestions
        self._last_suggestions.move_to_end(query)
        while len(self._last_suggestions) > REMEMBERED_QUERIES:
            self._last_suggestions.popitem(last=False)

    def _suggestion_for(self, document: CatalogDocument, score: float,
                        tokens: List[str], snippet: Optional[str] = None) -> Suggestion:
        title = document.title.lower()
        reasons = ["name match"] if any(token in title for token in tokens) else ["path match"]
        return Suggestion(
            id=document.id,
            source_type=SourceType.FILE,
            title=document.title,
            snippet=snippet if snippet is not None else document.path_text,
            source_id=document.id,
            source_path_or_handle=document.path_text,
            relevance_score=round(score, 3),
            reasons=reasons,
            timestamp=document.updated_at,
        )

    async def create_context_pack(self, request: CreateContextPackRequest) -> ContextPack:
        known = {s.id: s for s in self._last_suggestions.get(request.query, [])}
        items: List[ContextPackItem] = []
        attachment_paths: List[str] = []
        inline_blocks: List[str] = []

        for suggestion_id in request.selected_suggestion_ids:
            suggestion = known.get(suggestion_id)
            if suggestion is None:
                document = self.catalog.get(suggestion_id)
                if document is None:
                    logger.debug(f"Context pack skipped unknown suggestion {suggestion_id}")
                    continue
                suggestion = self._suggestion_for(document, 0.0, [])

            mode = request.mode_overrides.get(suggestion_id, InjectionMode.FILE_REF)
            item = self._context_item(suggestion, mode)
            items.append(item)
            if mode is InjectionMode.FILE_REF:
                attachment_paths.append(suggestion.source_path_or_handle)
            else:
                inline_blocks.append(item.text)

        return ContextPack(
            id=uuid.uuid4().hex,
            query=request.query,
            items=items,
            attachment_paths=attachment_paths,
            inline_prompt_blocks=inline_blocks,
        )

    def _context_item(self, suggestion: Suggestion, mode: InjectionMode) -> ContextPackItem:
        if mode is InjectionMode.FILE_REF:
            text = suggestion.source_path_or_handle
        elif mode is InjectionMode.INLINE_SNIPPET:
            text = suggestion.snippet
        else:
            modified = suggestion.timestamp.isoformat() if suggestion.timestamp else "unknown"
            text = (f"{suggestion.title}\n"
                    f"Path: {suggestion.source_path_or_handle}\n"
                    f"Modified: {modified}")
        return ContextPackItem(
            id=suggestion.id,
            source_type=suggestion.source_type,
            mode=mode,
            title=suggestion.title,
            text=text,
            file_path=suggestion.source_path_or_handle,
            metadata={"sourceId": suggestion.source_id},
        )

    async def preview(self, item_id: str) -> Optional[Suggestion]:
        document = self.catalog.get(item_id)
        if document is None:
            return None
        excerpt = await asyncio.to_thread(_read_excerpt, document.path)
        suggestion = self._suggestion_for(document, 1.0, [], snippet=excerpt)
        return suggestion.model_copy(update={"reasons": ["preview"]})

    async def state_snapshot(self) -> StateSnapshot:
        health = await self.health()
        return StateSnapshot(
            health=health,
            progress=await self.indexing_progress(),
            index_stats=await self.index_stats(),
            queue_activity=await self.queue_activity(),
            current_operation=health.current_operation,
            current_operation_source_type=health.current_operation_source_type,
            current_item_path=health.current_item_path,
        )

    async def indexing_progress(self) -> List[ProgressState]:
        return self.jobs.progress()

    async def index_stats(self) -> IndexStats:
        count = self.catalog.count()
        sources = [IndexedSourceStats(source_type=SourceType.FILE, document_count=count,
                                      last_document_updated_at=self.catalog.last_updated_at())]
        sources += [IndexedSourceStats(source_type=source, document_count=0)
                    for source in SourceType if source is not SourceType.FILE]
        return IndexStats(total_document_count=count, sources=sources)

    async def queue_activity(self) -> QueueActivity:
        depth = self.queue.size()
        sources = [QueueSourceActivity(source_type=source,
                                       queued_item_count=depth if source is SourceType.FILE else 0)
                   for source in SourceType]
        return QueueActivity(queue_depth=depth, sources=sources)

    # === Backfill control ===

    async def list_backfill_jobs(self) -> List[BackfillJob]:
        return self.jobs.jobs()

    async def pause_backfill(self, job_id: str):
        if not self.jobs.pause(job_id):
            logger.debug(f"Ignoring pause for unknown backfill job {job_id}")

    async def resume_backfill(self, job_id: str):
        if not self.jobs.resume(job_id):
            logger.debug(f"Ignoring resume for unknown backfill job {job_id}")

    async def configure_scopes(self, request: ConfigureScopesRequest):
        previous_roots = self._file_roots()
        self._scopes = list(request.scopes)
        for scope in request.scopes:
            self._scope_audit.append(self._audit_entry(scope))
            logger.info(f"Scope configured: {scope.source_type.value} "
                        f"include={scope.include_paths_or_handles} "
                        f"exclude={scope.exclude_paths_or_handles} enabled={scope.enabled}")

        for root in previous_roots - self._file_roots():
            unqueued = self.queue.discard_job(backfill_jobs.job_id_for(SourceType.FILE, root))
            dropped = self.catalog.remove_under(Path(root).expanduser())
            logger.info(f"Dropped {dropped} documents and {unqueued} queued files "
                        f"from removed scope {root}")

        self._sync_jobs()
        self._suggest_cache.clear()

    async def trigger_backfill(self):
        async with self._lifecycle_lock:
            self._startup_backfill_completed = False
            self._rescan_requested = True
            if self._running and not self._sleep_paused:
                self._schedule_backfill()

    # === Scopes ===

    def _file_scopes(self) -> List[SourceScope]:
        return [scope for scope in self._scopes
                if scope.enabled and scope.source_type is SourceType.FILE]

    def _file_roots(self) -> set:
        return {root for scope in self._file_scopes() for root in scope.include_paths_or_handles}

    def _sync_jobs(self):
        job_ids = []
        for scope in self._file_scopes():
            for root in scope.include_paths_or_handles:
                job_ids.append(self.jobs.ensure(root).id)
        self.jobs.retain(job_ids)

    def _audit_entry(self, scope: SourceScope) -> dict:
        return {
            "sourceType": scope.source_type.value,
            "include": list(scope.include_paths_or_handles),
            "exclude": list(scope.exclude_paths_or_handles),
            "enabled": scope.enabled,
            "recordedAt": time.time(),
        }

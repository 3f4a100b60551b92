# Copyright (c) 2024 RAG-KB Contributors
# SPDX-License-Identifier: MIT

"""Tests for the default in-process RetrievalService"""
import asyncio

import pytest

from config import DaemonConfiguration
from models import (
    ConfigureScopesRequest,
    CreateContextPackRequest,
    InjectionMode,
    SourceScope,
    SourceType,
    SuggestRequest,
)
from services import RetrievalService
from services.retrieval_service import REMEMBERED_QUERIES
from services.document_catalog import document_id_for


async def wait_for(predicate, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.02)


@pytest.fixture
def documents(tmp_path):
    root = tmp_path / "Documents"
    (root / "projects").mkdir(parents=True)
    (root / ".secret").mkdir()
    (root / "quarterly-report.txt").write_text("Revenue grew in Q3.")
    (root / "projects" / "roadmap.md").write_text("# Roadmap")
    (root / "projects" / "photo.png").write_bytes(b"\x89PNG")
    (root / ".secret" / "report-keys.txt").write_text("hidden")
    (root / ".DS_Store").write_bytes(b"")
    return root


@pytest.fixture
def service(documents):
    config = DaemonConfiguration(auth_token="t", startup_allowlist_roots=[str(documents)],
                                 queue_batch_size=2)
    return RetrievalService(config)


async def started(service, expected=3):
    await service.start()
    await wait_for(lambda: service.catalog.count() >= expected)
    return service


class TestLifecycle:
    """start/stop are idempotent"""

    @pytest.mark.asyncio
    async def test_start_twice(self, service):
        await service.start()
        await service.start()

        assert service.is_running
        await service.stop()

    @pytest.mark.asyncio
    async def test_stop_twice_and_before_start(self, service):
        await service.stop()
        await service.start()
        await service.stop()
        await service.stop()

        assert not service.is_running

    @pytest.mark.asyncio
    async def test_health_reports_running(self, service):
        await service.start()
        health = await service.health()
        await service.stop()

        assert health.running is True
        assert health.paused_for_sleep is False
        assert health.daemon_version


class TestSleepWake:
    """Sleep/wake transitions are idempotent"""

    @pytest.mark.asyncio
    async def test_sleep_then_wake(self, service):
        await service.start()

        await service.pause_for_system_sleep()
        assert service.is_sleep_paused
        assert service.queue.is_paused()

        await service.resume_after_system_wake()
        assert not service.is_sleep_paused
        assert not service.queue.is_paused()
        await service.stop()

    @pytest.mark.asyncio
    async def test_repeated_sleep_is_noop(self, service):
        await service.start()

        await service.pause_for_system_sleep()
        await service.pause_for_system_sleep()

        assert service.is_sleep_paused
        assert (await service.health()).paused_for_sleep is True
        await service.stop()

    @pytest.mark.asyncio
    async def test_wake_without_sleep_is_noop(self, service):
        await service.start()

        await service.resume_after_system_wake()

        assert service.is_running
        assert not service.is_sleep_paused
        await service.stop()

    @pytest.mark.asyncio
    async def test_sleep_before_start_is_noop(self, service):
        await service.pause_for_system_sleep()

        assert not service.is_sleep_paused

    @pytest.mark.asyncio
    async def test_overlapping_transitions_settle(self, service):
        await service.start()

        await asyncio.gather(
            service.pause_for_system_sleep(),
            service.pause_for_system_sleep(),
            service.resume_after_system_wake(),
            service.resume_after_system_wake(),
        )

        assert service.is_running
        assert not service.is_sleep_paused
        await service.stop()

    @pytest.mark.asyncio
    async def test_start_while_sleep_paused_resumes(self, service):
        await service.start()
        await service.pause_for_system_sleep()

        await service.start()

        assert not service.is_sleep_paused
        await service.stop()

    @pytest.mark.asyncio
    async def test_backfill_completes_after_wake(self, service):
        await service.start()
        await service.pause_for_system_sleep()
        await service.resume_after_system_wake()

        await wait_for(lambda: service.catalog.count() == 3)
        await service.stop()


class TestBackfill:
    """Startup backfill catalogues allowlisted files"""

    @pytest.mark.asyncio
    async def test_catalogues_visible_files(self, service, documents):
        await started(service)
        await asyncio.sleep(0.1)
        await service.stop()

        assert service.catalog.count() == 3
        assert service.catalog.get(document_id_for(documents / "quarterly-report.txt"))
        assert service.catalog.get(document_id_for(documents / ".secret" / "report-keys.txt")) is None

    @pytest.mark.asyncio
    async def test_job_completes(self, service, documents):
        await started(service)
        await wait_for(lambda: service.jobs.records()[0].status == "completed")

        [job] = await service.list_backfill_jobs()
        [progress] = await service.indexing_progress()
        await service.stop()

        assert job.id == f"file:{documents}"
        assert job.resume_token == "3"
        assert progress.estimated_total == 3
        assert progress.percent_complete == 100.0

    @pytest.mark.asyncio
    async def test_paused_job_waits_for_resume(self, service, documents):
        job_id = f"file:{documents}"
        await service.pause_backfill(job_id)
        await service.start()
        await asyncio.sleep(0.2)

        assert service.catalog.count() == 0
        assert (await service.list_backfill_jobs())[0].status == "paused"

        await service.resume_backfill(job_id)
        await wait_for(lambda: service.catalog.count() == 3)
        await service.stop()

    @pytest.mark.asyncio
    async def test_unknown_job_ids_are_ignored(self, service):
        before = await service.list_backfill_jobs()

        await service.pause_backfill("file:/nowhere")
        await service.resume_backfill("file:/nowhere")

        after = await service.list_backfill_jobs()
        assert [(j.id, j.status) for j in after] == [(j.id, j.status) for j in before]
        assert before[0].status == "pending"

    @pytest.mark.asyncio
    async def test_missing_root_completes_empty(self, tmp_path):
        config = DaemonConfiguration(auth_token="t", startup_allowlist_roots=[str(tmp_path / "nope")])
        service = RetrievalService(config)

        await service.start()
        await wait_for(lambda: service.jobs.records()[0].status == "completed")
        await service.stop()

        assert service.catalog.count() == 0

    @pytest.mark.asyncio
    async def test_scope_removed_mid_pass_is_not_walked(self, tmp_path):
        kept, removed = tmp_path / "kept", tmp_path / "removed"
        for root in (kept, removed):
            root.mkdir()
            for i in range(3):
                (root / f"{root.name}{i}.txt").write_text("x")
        service = RetrievalService(DaemonConfiguration(
            auth_token="t", startup_allowlist_roots=[str(kept), str(removed)]))
        await service.pause_backfill(f"file:{kept}")
        await service.start()

        await service.configure_scopes(ConfigureScopesRequest(scopes=[
            SourceScope(source_type=SourceType.FILE, include_paths_or_handles=[str(kept)]),
        ]))
        await service.resume_backfill(f"file:{kept}")
        await wait_for(lambda: service._backfill_task.done() and service.catalog.count() == 3)
        await asyncio.sleep(0.3)
        await service.stop()

        assert [job.id for job in await service.list_backfill_jobs()] == [f"file:{kept}"]
        assert sorted(doc.title for _, doc in service.catalog.search(["txt"])) == [
            "kept0.txt", "kept1.txt", "kept2.txt"]

    @pytest.mark.asyncio
    async def test_removing_paused_scope_releases_pass(self, tmp_path):
        paused = tmp_path / "paused"
        paused.mkdir()
        (paused / "a.txt").write_text("x")
        service = RetrievalService(DaemonConfiguration(
            auth_token="t", startup_allowlist_roots=[str(paused)]))
        await service.pause_backfill(f"file:{paused}")
        await service.start()

        await service.configure_scopes(ConfigureScopesRequest(scopes=[]))
        await wait_for(lambda: service._backfill_task.done())
        await service.stop()

        assert service.catalog.count() == 0
        assert await service.list_backfill_jobs() == []

    @pytest.mark.asyncio
    async def test_trigger_rescans_new_files(self, service, documents):
        await started(service)
        (documents / "new-notes.txt").write_text("fresh")

        await service.trigger_backfill()
        await wait_for(lambda: service.catalog.count() == 4)
        await service.stop()


class TestSuggest:
    """Name/path suggestions from the catalogue"""

    @pytest.mark.asyncio
    async def test_matches_name(self, service):
        await started(service)
        response = await service.suggest(SuggestRequest(query="Report"))
        await service.stop()

        assert [s.title for s in response.suggestions] == ["quarterly-report.txt"]
        assert response.total_candidate_count == 1
        assert response.suggestions[0].reasons == ["name match"]
        assert response.suggestions[0].source_type is SourceType.FILE

    @pytest.mark.asyncio
    async def test_matches_path(self, service):
        await started(service)
        response = await service.suggest(SuggestRequest(query="projects"))
        await service.stop()

        assert sorted(s.title for s in response.suggestions) == ["photo.png", "roadmap.md"]
        assert all(s.reasons == ["path match"] for s in response.suggestions)

    @pytest.mark.asyncio
    async def test_limit(self, service):
        await started(service)
        response = await service.suggest(SuggestRequest(query="projects", limit=1))
        await service.stop()

        assert len(response.suggestions) == 1
        assert response.total_candidate_count == 2

    @pytest.mark.asyncio
    async def test_non_file_filter_yields_nothing(self, service):
        await started(service)
        response = await service.suggest(
            SuggestRequest(query="report", source_filters=[SourceType.EMAIL])
        )
        await service.stop()

        assert response.suggestions == []

    @pytest.mark.asyncio
    async def test_repeat_within_ttl_is_cached(self, service):
        await started(service)
        first = await service.suggest(SuggestRequest(query="roadmap"))
        second = await service.suggest(SuggestRequest(query="roadmap"))
        await service.stop()

        assert second is first

    @pytest.mark.asyncio
    async def test_remembers_only_recent_queries(self, service):
        for i in range(REMEMBERED_QUERIES + 10):
            await service.suggest(SuggestRequest(query=f"query {i}"))

        remembered = list(service._last_suggestions)
        assert len(remembered) == REMEMBERED_QUERIES
        assert remembered[-1] == f"query {REMEMBERED_QUERIES + 9}"
        assert "query 0" not in remembered

    @pytest.mark.asyncio
    async def test_partial_before_backfill(self, service):
        response = await service.suggest(SuggestRequest(query="report"))

        assert response.partial is True
        assert response.suggestions == []


class TestContextPack:
    """Context packs from the last suggestions for a query"""

    @pytest.mark.asyncio
    async def test_modes(self, service, documents):
        await started(service)
        suggestions = (await service.suggest(SuggestRequest(query="projects"))).suggestions
        ids = [s.id for s in suggestions]
        pack = await service.create_context_pack(CreateContextPackRequest(
            query="projects",
            selected_suggestion_ids=ids + ["unknown-id"],
            mode_overrides={ids[1]: InjectionMode.INLINE_SNIPPET},
        ))
        await service.stop()

        assert [item.id for item in pack.items] == ids
        assert pack.attachment_paths == [suggestions[0].source_path_or_handle]
        assert pack.inline_prompt_blocks == [suggestions[1].snippet]
        assert pack.items[0].mode is InjectionMode.FILE_REF

    @pytest.mark.asyncio
    async def test_structured_summary(self, service, documents):
        await started(service)
        doc_id = document_id_for(documents / "quarterly-report.txt")
        pack = await service.create_context_pack(CreateContextPackRequest(
            query="never suggested",
            selected_suggestion_ids=[doc_id],
            mode_overrides={doc_id: InjectionMode.STRUCTURED_SUMMARY},
        ))
        await service.stop()

        [item] = pack.items
        assert item.text.startswith("quarterly-report.txt\nPath: ")
        assert pack.inline_prompt_blocks == [item.text]


class TestPreview:
    """Preview of catalogued items"""

    @pytest.mark.asyncio
    async def test_unknown_item_is_none(self, service):
        assert await service.preview("missing") is None

    @pytest.mark.asyncio
    async def test_text_file_excerpt(self, service, documents):
        await started(service)
        preview = await service.preview(document_id_for(documents / "quarterly-report.txt"))
        await service.stop()

        assert preview.snippet == "Revenue grew in Q3."
        assert preview.reasons == ["preview"]

    @pytest.mark.asyncio
    async def test_binary_file_shows_path(self, service, documents):
        await started(service)
        image = documents / "projects" / "photo.png"
        preview = await service.preview(document_id_for(image))
        await service.stop()

        assert preview.snippet == str(image)


class TestScopesAndStats:
    """Scope configuration, index stats and queue activity"""

    @pytest.mark.asyncio
    async def test_configure_scopes_replaces_jobs_and_audits(self, service, documents, tmp_path):
        await started(service)
        other = tmp_path / "Desktop"
        other.mkdir()

        await service.configure_scopes(ConfigureScopesRequest(scopes=[
            SourceScope(source_type=SourceType.FILE, include_paths_or_handles=[str(other)]),
            SourceScope(source_type=SourceType.EMAIL, enabled=False),
        ]))
        await service.stop()

        assert [job.id for job in await service.list_backfill_jobs()] == [f"file:{other}"]
        assert len(service.scope_audit) == 2
        assert service.scope_audit[0]["include"] == [str(other)]
        assert service.catalog.count() == 0

    @pytest.mark.asyncio
    async def test_removed_scope_drops_queued_files(self, service, documents, tmp_path):
        job = service.jobs.ensure(str(documents))
        service.queue.add_many([documents / "a.txt", documents / "b.txt"], job.id)

        await service.configure_scopes(ConfigureScopesRequest(scopes=[
            SourceScope(source_type=SourceType.FILE,
                        include_paths_or_handles=[str(tmp_path / "Desktop")]),
        ]))

        assert service.queue.is_empty()

    @pytest.mark.asyncio
    async def test_excluded_paths_are_skipped(self, service, documents):
        await service.configure_scopes(ConfigureScopesRequest(scopes=[
            SourceScope(source_type=SourceType.FILE,
                        include_paths_or_handles=[str(documents)],
                        exclude_paths_or_handles=[str(documents / "projects")]),
        ]))

        await started(service, expected=1)
        await wait_for(lambda: service.jobs.records()[0].status == "completed")
        await asyncio.sleep(0.3)
        await service.stop()

        assert service.catalog.count() == 1

    @pytest.mark.asyncio
    async def test_index_stats_and_activity(self, service):
        await started(service)
        stats = await service.index_stats()
        activity = await service.queue_activity()
        snapshot = await service.state_snapshot()
        await service.stop()

        assert stats.total_document_count == 3
        file_stats = next(s for s in stats.sources if s.source_type is SourceType.FILE)
        assert file_stats.document_count == 3
        assert file_stats.last_document_updated_at is not None
        assert {s.source_type for s in activity.sources} == set(SourceType)
        assert snapshot.index_stats.total_document_count == 3

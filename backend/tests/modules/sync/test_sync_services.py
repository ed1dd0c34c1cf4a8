"""Tests for the ticket and document sync drivers."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from helpdesk_rag.modules.common.exceptions import EmbeddingError, StoreError
from helpdesk_rag.modules.knowledge.schemas import (
    DocumentMetadata,
    IngestResult,
    IngestStatus,
    SourceType,
    TicketMetadata,
)
from helpdesk_rag.modules.knowledge.services import KnowledgeService
from helpdesk_rag.modules.sync.schemas import DocumentRecord, TicketRecord
from helpdesk_rag.modules.sync.services import (
    BackgroundIngestor,
    DocumentSyncService,
    TicketSyncService,
    build_ticket_content,
    tenant_for_project,
)


def stored(source_id: str, chunk_count: int = 1) -> IngestResult:
    return IngestResult(status=IngestStatus.STORED, source_id=source_id, chunk_count=chunk_count)


@pytest.fixture
def knowledge_service():
    service = AsyncMock(spec=KnowledgeService)
    service.ingest.side_effect = lambda **kwargs: stored(kwargs["source_id"])
    service.has_source.return_value = False
    return service


@pytest.fixture
def ticket():
    return TicketRecord(
        key="HELP-42",
        summary="Outlook crashes on start",
        description="Crashes right after the splash screen.",
        comments=["Cleared the profile cache.", "Confirmed fixed by user."],
        priority="High",
        status="Done",
    )


@pytest.fixture
def document():
    return DocumentRecord(
        page_id="1015813",
        tenant_id="bitsup",
        title="Build agents",
        body="<p>Agents are provisioned nightly.</p>",
        space_id="SP1",
        author_id="u-7",
        created_at="2024-05-01T10:00:00Z",
        base_url="https://wiki.example.com/wiki/",
        webui="/spaces/SP1/pages/1015813",
    )


class TestTicketContent:
    def test_all_parts(self):
        content = build_ticket_content("Summary", "Details", ["first", "second"])

        assert content == (
            "SUMMARY: Summary\n\n"
            "DESCRIPTION:\nDetails\n\n"
            "COMMENTS AND RESOLUTION:\nfirst\n---\nsecond\n---\n\n"
        )

    def test_empty_parts_are_omitted(self):
        assert build_ticket_content("Only summary", None, []) == "SUMMARY: Only summary\n\n"
        assert build_ticket_content(None, "", ["", "note"]) == "COMMENTS AND RESOLUTION:\nnote\n---\n\n"

    @pytest.mark.parametrize("project_key, tenant", [("HELP", "help"), ("", "default"), (None, "default")])
    def test_tenant_for_project(self, project_key, tenant):
        assert tenant_for_project(project_key) == tenant


class TestTicketSyncService:
    @pytest.mark.asyncio
    async def test_process_closed_ticket(self, knowledge_service, ticket, mock_db):
        service = TicketSyncService(knowledge_service=knowledge_service)

        result = await service.process_closed_ticket(ticket, mock_db)

        assert result.status == IngestStatus.STORED
        kwargs = knowledge_service.ingest.await_args.kwargs
        assert kwargs["tenant_id"] == "help"
        assert kwargs["source_type"] == SourceType.TICKET
        assert kwargs["source_id"] == "HELP-42"
        assert kwargs["title"] == "Outlook crashes on start"
        assert kwargs["raw_content"].startswith("SUMMARY: Outlook crashes on start\n\nDESCRIPTION:\n")
        assert "Cleared the profile cache.\n---\n" in kwargs["raw_content"]
        assert kwargs["metadata"] == TicketMetadata(
            project_key="HELP", request_type="General", priority="High", status="Done", assignee="Unassigned"
        )
        assert kwargs["db"] is mock_db

    @pytest.mark.asyncio
    async def test_explicit_project_key_wins(self, knowledge_service, mock_db):
        service = TicketSyncService(knowledge_service=knowledge_service)

        await service.process_closed_ticket(TicketRecord(key="X-1", summary="s", project_key="OPS"), mock_db)

        assert knowledge_service.ingest.await_args.kwargs["tenant_id"] == "ops"

    @pytest.mark.asyncio
    async def test_sync_tickets_counts_outcomes(self, knowledge_service, session_factory):
        def ingest(**kwargs):
            source_id = kwargs["source_id"]
            if source_id == "HELP-2":
                raise EmbeddingError("Embedding API timed out after 30.0s")
            if source_id == "HELP-3":
                return IngestResult(status=IngestStatus.SKIPPED, source_id=source_id, reason="too short")
            return stored(source_id)

        knowledge_service.ingest.side_effect = ingest
        service = TicketSyncService(knowledge_service=knowledge_service)
        tickets = [TicketRecord(key=f"HELP-{i}", summary=f"ticket {i}") for i in range(1, 5)]

        report = await service.sync_tickets(tickets, session_factory)

        assert report.processed == 4
        assert report.stored == 2
        assert report.skipped == 1
        assert report.failed == 1
        assert report.failed_ids == ["HELP-2"]
        assert knowledge_service.ingest.await_count == 4


class TestDocumentSyncService:
    @pytest.mark.asyncio
    async def test_process_document(self, knowledge_service, document, mock_db):
        service = DocumentSyncService(knowledge_service=knowledge_service)

        await service.process_document(document, mock_db)

        kwargs = knowledge_service.ingest.await_args.kwargs
        assert kwargs["tenant_id"] == "bitsup"
        assert kwargs["source_type"] == SourceType.DOCUMENT
        assert kwargs["source_id"] == "1015813"
        assert kwargs["raw_content"] == "Title: Build agents\n\n<p>Agents are provisioned nightly.</p>"
        assert kwargs["metadata"] == DocumentMetadata(
            space_id="SP1",
            author_id="u-7",
            created_at="2024-05-01T10:00:00Z",
            web_url="https://wiki.example.com/wiki/spaces/SP1/pages/1015813",
        )

    @pytest.mark.asyncio
    async def test_sync_document_skips_existing(self, knowledge_service, document, mock_db):
        knowledge_service.has_source.return_value = True
        service = DocumentSyncService(knowledge_service=knowledge_service)

        assert await service.sync_document(document, mock_db) is None

        knowledge_service.has_source.assert_awaited_once_with("1015813", SourceType.DOCUMENT, mock_db)
        knowledge_service.ingest.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sync_document_force_reindexes(self, knowledge_service, document, mock_db):
        knowledge_service.has_source.return_value = True
        service = DocumentSyncService(knowledge_service=knowledge_service)

        result = await service.sync_document(document, mock_db, force=True)

        assert result.status == IngestStatus.STORED
        knowledge_service.has_source.assert_not_awaited()

    def test_web_url_without_webui(self, document):
        assert document.model_copy(update={"webui": None}).web_url is None


class TestBackgroundIngestor:
    @pytest.mark.asyncio
    async def test_runs_submissions_and_drains(self, knowledge_service, session_factory, ticket, document):
        ingestor = BackgroundIngestor(
            session_factory,
            ticket_service=TicketSyncService(knowledge_service=knowledge_service),
            document_service=DocumentSyncService(knowledge_service=knowledge_service),
        )

        ingestor.submit_ticket(ticket)
        ingestor.submit_document(document)
        await ingestor.drain()

        assert ingestor.pending == 0
        assert sorted(call.kwargs["source_id"] for call in knowledge_service.ingest.await_args_list) == [
            "1015813",
            "HELP-42",
        ]

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, knowledge_service, session_factory, ticket, caplog):
        knowledge_service.ingest.side_effect = StoreError("Failed to replace chunks for source HELP-42")
        ingestor = BackgroundIngestor(session_factory, ticket_service=TicketSyncService(knowledge_service=knowledge_service))

        with caplog.at_level(logging.ERROR, logger="helpdesk_rag.modules.sync.services"):
            task = ingestor.submit_ticket(ticket)
            await ingestor.drain()

        assert task.done() and task.exception() is None
        assert "Background ingestion failed for HELP-42" in caplog.text

    @pytest.mark.asyncio
    async def test_submit_returns_immediately(self, knowledge_service, session_factory, ticket):
        release = asyncio.Event()

        async def slow_ingest(**kwargs):
            await release.wait()
            return stored(kwargs["source_id"])

        knowledge_service.ingest.side_effect = slow_ingest
        ingestor = BackgroundIngestor(session_factory, ticket_service=TicketSyncService(knowledge_service=knowledge_service))

        ingestor.submit_ticket(ticket)
        await asyncio.sleep(0)
        assert ingestor.pending == 1

        release.set()
        await ingestor.drain()
        assert ingestor.pending == 0

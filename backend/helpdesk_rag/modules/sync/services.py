"""Drivers that feed tickets and documents into the knowledge engine."""

import asyncio
from typing import Awaitable, Callable, Iterable, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...infrastructure.logging import get_logger
from ..common.exceptions import DomainError
from ..knowledge.schemas import DocumentMetadata, IngestResult, IngestStatus, SourceType, TicketMetadata
from ..knowledge.services import KnowledgeService
from .schemas import DocumentRecord, SyncReport, TicketRecord

logger = get_logger(__name__)

DEFAULT_TENANT = "default"


def build_ticket_content(summary: Optional[str], description: Optional[str], comments: Iterable[str]) -> str:
    """Assemble the indexed text of a ticket, omitting empty parts."""
    parts = []
    if summary:
        parts.append(f"SUMMARY: {summary}\n\n")
    if description:
        parts.append(f"DESCRIPTION:\n{description}\n\n")

    comment_text = "".join(f"{body}\n---\n" for body in comments if body)
    if comment_text:
        parts.append(f"COMMENTS AND RESOLUTION:\n{comment_text}\n")

    return "".join(parts)


def tenant_for_project(project_key: Optional[str]) -> str:
    if not project_key:
        return DEFAULT_TENANT
    return project_key.lower()


class TicketSyncService:
    """Indexes resolved tickets, one tenant per project."""

    def __init__(self, knowledge_service: Optional[KnowledgeService] = None):
        self.knowledge_service = knowledge_service or KnowledgeService()

    async def process_closed_ticket(self, ticket: TicketRecord, db: AsyncSession) -> IngestResult:
        """Index one resolved ticket, replacing whatever was stored for its key.

        Raises:
            EmbeddingError: If the ticket could not be embedded
            StoreError: If the chunks could not be stored
        """
        project_key = ticket.resolved_project_key
        tenant_id = tenant_for_project(project_key)

        logger.info(
            f"Processing ticket {ticket.key} for tenant {tenant_id} with status {ticket.status}",
            extra={"source_id": ticket.key, "tenant_id": tenant_id},
        )

        metadata = TicketMetadata(
            project_key=project_key,
            request_type=ticket.request_type or "General",
            priority=ticket.priority or "Unknown",
            status=ticket.status or "Unknown",
            assignee=ticket.assignee or "Unassigned",
        )

        return await self.knowledge_service.ingest(
            tenant_id=tenant_id,
            source_type=SourceType.TICKET,
            source_id=ticket.key,
            title=ticket.summary,
            raw_content=build_ticket_content(ticket.summary, ticket.description, ticket.comments),
            metadata=metadata,
            db=db,
        )

    async def sync_tickets(
        self,
        tickets: Iterable[TicketRecord],
        db_factory: async_sessionmaker[AsyncSession],
    ) -> SyncReport:
        """Index a batch of tickets, each in its own session.

        A ticket that fails is logged and counted; the rest of the batch
        still runs.
        """
        report = SyncReport()

        for ticket in tickets:
            report.processed += 1
            try:
                async with db_factory() as db:
                    result = await self.process_closed_ticket(ticket, db)
            except DomainError as e:
                logger.error(f"Failed to index ticket {ticket.key}: {e}", extra={"source_id": ticket.key})
                report.failed += 1
                report.failed_ids.append(ticket.key)
                continue

            if result.status == IngestStatus.STORED:
                report.stored += 1
            else:
                report.skipped += 1

        logger.info(
            f"Ticket sync finished: {report.stored} stored, {report.skipped} skipped, {report.failed} failed"
        )
        return report


class DocumentSyncService:
    """Indexes knowledge-base pages."""

    def __init__(self, knowledge_service: Optional[KnowledgeService] = None):
        self.knowledge_service = knowledge_service or KnowledgeService()

    async def process_document(self, document: DocumentRecord, db: AsyncSession) -> IngestResult:
        """Index one page, replacing whatever was stored for its id."""
        content = f"Title: {document.title}\n\n" if document.title else ""
        content += document.body or ""

        metadata = DocumentMetadata(
            space_id=document.space_id,
            author_id=document.author_id,
            created_at=document.created_at,
            web_url=document.web_url,
        )

        return await self.knowledge_service.ingest(
            tenant_id=document.tenant_id,
            source_type=SourceType.DOCUMENT,
            source_id=document.page_id,
            title=document.title,
            raw_content=content,
            metadata=metadata,
            db=db,
        )

    async def sync_document(self, document: DocumentRecord, db: AsyncSession, force: bool = False) -> Optional[IngestResult]:
        """Index a page unless it is already in the knowledge base.

        Returns:
            The ingest result, or None if the page was already indexed and
            ``force`` is false
        """
        if not force and await self.knowledge_service.has_source(document.page_id, SourceType.DOCUMENT, db):
            logger.info(
                f"Document {document.page_id} already exists in knowledge base, skipping",
                extra={"source_id": document.page_id, "tenant_id": document.tenant_id},
            )
            return None

        return await self.process_document(document, db)


class BackgroundIngestor:
    """Runs sync work as background tasks, each with its own database session.

    Failures are logged, never raised to the submitter. Call ``drain()`` to
    wait for everything submitted so far, e.g. on shutdown.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ticket_service: Optional[TicketSyncService] = None,
        document_service: Optional[DocumentSyncService] = None,
    ):
        self.session_factory = session_factory
        self.ticket_service = ticket_service or TicketSyncService()
        self.document_service = document_service or DocumentSyncService()
        self._tasks: Set[asyncio.Task] = set()

    def submit_ticket(self, ticket: TicketRecord) -> asyncio.Task:
        return self._spawn(ticket.key, lambda db: self.ticket_service.process_closed_ticket(ticket, db))

    def submit_document(self, document: DocumentRecord, force: bool = False) -> asyncio.Task:
        return self._spawn(document.page_id, lambda db: self.document_service.sync_document(document, db, force=force))

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every submitted task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, source_id: str, work: Callable[[AsyncSession], Awaitable[object]]) -> asyncio.Task:
        task = asyncio.create_task(self._run(source_id, work), name=f"ingest-{source_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, source_id: str, work: Callable[[AsyncSession], Awaitable[object]]) -> None:
        try:
            async with self.session_factory() as db:
                await work(db)
        except Exception:
            logger.exception(f"Background ingestion failed for {source_id}", extra={"source_id": source_id})

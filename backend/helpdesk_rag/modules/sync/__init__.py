"""Synchronization of tickets and documents into the knowledge base."""

from .schemas import DocumentRecord, SyncReport, TicketRecord
from .services import BackgroundIngestor, DocumentSyncService, TicketSyncService

__all__ = [
    "BackgroundIngestor",
    "DocumentRecord",
    "DocumentSyncService",
    "SyncReport",
    "TicketRecord",
    "TicketSyncService",
]

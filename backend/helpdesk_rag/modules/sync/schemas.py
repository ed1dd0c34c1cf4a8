"""Pydantic schemas for records pulled from the ticketing and documentation systems."""

from typing import List, Optional

from pydantic import BaseModel, Field


class TicketRecord(BaseModel):
    """A resolved helpdesk ticket as returned by the ticketing system."""

    key: str = Field(min_length=1, description="Ticket key, e.g. 'PROJ-123'")
    summary: Optional[str] = None
    description: Optional[str] = None
    comments: List[str] = Field(default_factory=list, description="Comment bodies, oldest first")
    assignee: Optional[str] = None
    project_key: Optional[str] = None
    request_type: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None

    @property
    def resolved_project_key(self) -> str:
        """Project key, falling back to the ticket key prefix."""
        if self.project_key:
            return self.project_key
        return self.key.split("-")[0]


class DocumentRecord(BaseModel):
    """A knowledge-base page as returned by the documentation system."""

    page_id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    title: Optional[str] = None
    body: Optional[str] = Field(default=None, description="Page body; markup is stripped on ingest")
    space_id: Optional[str] = None
    author_id: Optional[str] = None
    created_at: Optional[str] = None
    base_url: Optional[str] = None
    webui: Optional[str] = None

    @property
    def web_url(self) -> Optional[str]:
        if not self.webui:
            return None
        return f"{(self.base_url or '').rstrip('/')}{self.webui}"


class SyncReport(BaseModel):
    """Counts for one batch sync run."""

    processed: int = 0
    stored: int = 0
    skipped: int = 0
    failed: int = 0
    failed_ids: List[str] = Field(default_factory=list)

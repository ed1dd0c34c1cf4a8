"""Tests for the knowledge chunk ORM model."""

import uuid
from datetime import datetime

from helpdesk_rag.modules.knowledge.models import KnowledgeChunk


def make_row(**overrides) -> KnowledgeChunk:
    fields = {
        "tenant_id": "acme",
        "source_type": "TICKET",
        "source_id": "X-1",
        "content": "VPN drops every ten minutes",
        "embedding": [0.0] * 768,
    }
    fields.update(overrides)
    return KnowledgeChunk(**fields)


def test_identity_and_timestamp_are_generated():
    chunk = make_row()

    assert isinstance(chunk.id, uuid.UUID)
    assert isinstance(chunk.created_at, datetime)
    assert chunk.created_at.tzinfo is not None


def test_each_row_gets_its_own_id():
    assert make_row().id != make_row().id


def test_optional_columns_default():
    chunk = make_row()

    assert chunk.source_title is None
    assert chunk.extra_metadata == {}
    assert make_row().extra_metadata is not chunk.extra_metadata


def test_id_column_keeps_server_default():
    column = KnowledgeChunk.__table__.c.id

    assert column.primary_key
    assert column.server_default is not None

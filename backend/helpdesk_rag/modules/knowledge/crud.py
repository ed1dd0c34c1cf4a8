"""CRUD operations for knowledge chunks using FastCRUD."""

from fastcrud import FastCRUD

from .models import KnowledgeChunk

knowledge_chunk_crud: FastCRUD = FastCRUD(KnowledgeChunk)

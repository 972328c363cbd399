"""Shared domain models used across the system."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_final(self) -> bool:
        """Ready and failed records are never changed again."""
        return self is not DocumentStatus.PROCESSING


class FileType(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    DOC = "doc"
    TXT = "txt"


_id_lock = threading.Lock()
_last_id = 0


def new_document_id() -> str:
    """Microsecond timestamp, zero-padded so string order is creation order.

    Bumped past the previous value when the clock has not advanced, so IDs
    minted by one process are unique and strictly increasing.
    """
    global _last_id
    with _id_lock:
        now = time.time_ns() // 1000
        _last_id = max(now, _last_id + 1)
        return f"{_last_id:016d}"


class IngestMetadata(BaseModel):
    """User-supplied fields attached to an upload."""

    title: str
    category: str
    version: str

    @field_validator("title", "category", "version")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class Document(BaseModel):
    """An uploaded file and its indexing state."""

    id: str = Field(default_factory=new_document_id)
    title: str
    category: str
    version: str
    file_type: FileType
    file_size: str
    storage_uri: str
    blob_name: str
    status: DocumentStatus = DocumentStatus.PROCESSING
    gemini_document_id: str | None = None
    gemini_store_name: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_terminal_state(self) -> Document:
        if self.status is DocumentStatus.READY and not self.gemini_document_id:
            raise ValueError("a ready document needs gemini_document_id")
        if self.status is DocumentStatus.FAILED and not self.error_message:
            raise ValueError("a failed document needs error_message")
        return self


class StoreRegistration(BaseModel):
    """Maps the fixed registry key to the retrieval service's store handle."""

    key: str
    store_name: str
    display_name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StoredBlob(BaseModel):
    uri: str
    blob_name: str


class IndexingOperation(BaseModel):
    """A pollable ingest operation, as reported by the retrieval service."""

    name: str
    done: bool = False
    error: str | None = None
    document_name: str | None = None


class GroundingFragment(BaseModel):
    """One retrieved snippet plus a reference to the file it came from."""

    ref: str = ""
    title: str | None = None
    text: str | None = None


class GroundingSupport(BaseModel):
    """A span of the answer and the fragments (by position) that back it."""

    text: str = ""
    start_index: int | None = None
    end_index: int | None = None
    fragment_indices: list[int] = []


class Answer(BaseModel):
    text: str
    fragments: list[GroundingFragment] = []
    supports: list[GroundingSupport] = []


class Citation(BaseModel):
    """A deduplicated reference to one source document."""

    document_id: str
    title: str
    snippet: str
    index: int
    fragment_indices: list[int] = []


class SearchResult(BaseModel):
    query: str
    answer: str
    rendered_answer: str
    citations: list[Citation] = []
    fragment_map: dict[int, int] = {}
    supports: list[GroundingSupport] = []

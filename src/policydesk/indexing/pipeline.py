"""Indexing pipeline: blob → record → Gemini ingest → poll → reconcile."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path

from policydesk.config import get_settings
from policydesk.errors import (
    DeletionError,
    DocumentNotFoundError,
    IndexingError,
    IndexingFailedError,
    IndexingTimeoutError,
    ResponseParseError,
    UploadRejected,
)
from policydesk.gemini.registry import StoreRegistry
from policydesk.gemini.service import RetrievalService
from policydesk.models import (
    Document,
    DocumentStatus,
    FileType,
    IndexingOperation,
    IngestMetadata,
    new_document_id,
)
from policydesk.stores.blobstore import BlobStore
from policydesk.stores.docstore import DocStore

log = logging.getLogger(__name__)

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "txt": "text/plain",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def file_extension(file_name: str) -> str:
    return Path(file_name).suffix.lower().lstrip(".")


def content_type_for(file_name: str) -> str:
    """MIME type from the file-name suffix."""
    return CONTENT_TYPES.get(file_extension(file_name), DEFAULT_CONTENT_TYPE)


def format_file_size(size: int) -> str:
    """Human readable size, e.g. 1536 -> '1.5 KB'."""
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


async def wait_for_operation(
    service: RetrievalService,
    operation: IndexingOperation,
    *,
    poll_interval: float | None = None,
    max_attempts: int | None = None,
    progress_every: int | None = None,
) -> str:
    """Poll *operation* until it finishes and return the indexed document name.

    Raises:
        IndexingTimeoutError: still running after ``max_attempts`` polls.
        IndexingFailedError: the service reported an error.
        ResponseParseError: finished without a document name.
    """
    cfg = get_settings().indexing
    poll_interval = cfg.poll_interval if poll_interval is None else poll_interval
    max_attempts = cfg.max_poll_attempts if max_attempts is None else max_attempts
    progress_every = progress_every or cfg.progress_every

    attempts = 0
    while not operation.done and attempts < max_attempts:
        await asyncio.sleep(poll_interval)
        operation = await service.poll(operation)
        attempts += 1

        if attempts % progress_every == 0:
            log.info("Gemini indexing in progress... %gs elapsed", attempts * poll_interval)

    if not operation.done:
        budget = max_attempts * poll_interval
        raise IndexingTimeoutError(
            f"Gemini indexing timeout - operation did not complete in {budget:g}s "
            f"({attempts} polls)"
        )
    if operation.error:
        raise IndexingFailedError(operation.error)
    if not operation.document_name:
        raise ResponseParseError(f"Operation {operation.name} finished without a document name")
    return operation.document_name


async def ingest_document(
    data: bytes,
    file_name: str,
    metadata: IngestMetadata,
    docstore: DocStore,
    blobstore: BlobStore,
    service: RetrievalService,
    registry: StoreRegistry,
) -> Document:
    """Upload and index one document, blocking until indexing resolves.

    Args:
        data: Raw file bytes.
        file_name: Original file name; its suffix picks the content type.
        metadata: Title, category and version supplied with the upload.

    Returns:
        The document in the ``ready`` state.

    Raises:
        IndexingError: indexing failed or timed out. The record has been
            moved to ``failed`` and both it and the blob are kept.
    """
    file_name = Path(file_name).name
    try:
        file_type = FileType(file_extension(file_name))
    except ValueError:
        raise UploadRejected(f"Unsupported file type: {file_name}") from None
    content_type = content_type_for(file_name)
    doc_id = new_document_id()

    blob = blobstore.put(
        f"{doc_id}-{file_name}",
        data,
        content_type,
        metadata=metadata.model_dump(),
    )

    doc = docstore.create_document(
        Document(
            id=doc_id,
            title=metadata.title,
            category=metadata.category,
            version=metadata.version,
            file_type=file_type,
            file_size=format_file_size(len(data)),
            storage_uri=blob.uri,
            blob_name=blob.blob_name,
            status=DocumentStatus.PROCESSING,
        )
    )
    log.info("Uploading document to Gemini File Search Store: %s (%s)", file_name, doc.id)

    try:
        store_name = await registry.get_or_create()
        operation = await service.ingest(
            data,
            content_type,
            file_name,
            metadata.model_dump(),
            store_name,
        )
        document_name = await wait_for_operation(service, operation)
        doc = docstore.update_document(
            doc.id,
            gemini_document_id=document_name,
            gemini_store_name=store_name,
            status=DocumentStatus.READY,
        )
    except Exception as e:
        log.exception("Indexing failed for %s (%s)", file_name, doc.id)
        failed = docstore.update_document(
            doc.id,
            status=DocumentStatus.FAILED,
            error_message=f"Gemini indexing failed: {e}",
        )
        raise IndexingError(doc.id, str(e), failed) from e
    except BaseException:
        # Cancelled or interrupted mid-poll: the record must not stay processing.
        log.warning("Indexing interrupted for %s (%s)", file_name, doc.id)
        docstore.update_document(
            doc.id,
            status=DocumentStatus.FAILED,
            error_message="Gemini indexing interrupted before completion",
        )
        raise

    log.info("Document indexed: %s -> %s", doc.id, doc.gemini_document_id)
    return doc


async def remove_document(
    doc_id: str,
    docstore: DocStore,
    blobstore: BlobStore,
    service: RetrievalService,
) -> None:
    """Cascading delete: blob, then Gemini document, then metadata record.

    Failing to delete the Gemini document only leaves an orphaned index
    entry, so it is logged and skipped. Blob and record failures raise
    DeletionError.
    """
    doc = docstore.get_document(doc_id)
    if doc is None:
        raise DocumentNotFoundError(doc_id)

    try:
        blobstore.delete(doc.blob_name)
    except OSError as e:
        raise DeletionError(doc_id, f"blob delete failed: {e}") from e

    if doc.gemini_document_id:
        try:
            await service.delete_indexed(doc.gemini_document_id)
        except Exception:
            log.warning(
                "Failed to delete Gemini document %s (non-fatal)",
                doc.gemini_document_id,
                exc_info=True,
            )

    try:
        docstore.delete_document(doc_id)
    except sqlite3.Error as e:
        raise DeletionError(doc_id, f"record delete failed: {e}") from e
    log.info("Deleted document %s", doc_id)

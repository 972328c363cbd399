"""Document service: upload validation, listing and lookups."""

from __future__ import annotations

from policydesk.config import Settings, get_settings
from policydesk.errors import DocumentNotFoundError, UploadRejected
from policydesk.indexing.pipeline import file_extension
from policydesk.models import Document, DocumentStatus, IngestMetadata
from policydesk.stores.blobstore import BlobStore
from policydesk.stores.docstore import DocStore


def validate_upload(
    file_name: str,
    size: int,
    title: str | None,
    category: str | None,
    version: str | None,
    *,
    settings: Settings | None = None,
) -> IngestMetadata:
    """Reject an upload before anything is stored. Returns the cleaned metadata."""
    cfg = (settings or get_settings()).upload

    if not all(v and v.strip() for v in (title, category, version)):
        raise UploadRejected("Title, category, and version are required")

    allowed = [t.lower() for t in cfg.allowed_types]
    if file_extension(file_name) not in allowed:
        raise UploadRejected(
            f"Only {', '.join(t.upper() for t in allowed)} files are allowed"
        )

    if size <= 0:
        raise UploadRejected("File is empty")
    if size > cfg.max_size_mb * 1024 * 1024:
        raise UploadRejected(f"File size must be less than {cfg.max_size_mb}MB")

    return IngestMetadata(title=title, category=category, version=version)


def list_documents(docstore: DocStore) -> list[Document]:
    """All documents, newest first."""
    return sorted(
        docstore.list_documents(),
        key=lambda d: (d.created_at, d.id),
        reverse=True,
    )


def get_document(docstore: DocStore, doc_id: str) -> Document:
    doc = docstore.get_document(doc_id)
    if doc is None:
        raise DocumentNotFoundError(doc_id)
    return doc


def update_status(
    docstore: DocStore,
    doc_id: str,
    status: DocumentStatus | str,
    error_message: str | None = None,
) -> Document:
    """Manually set a document's status. Only forward transitions are accepted."""
    fields: dict = {"status": DocumentStatus(status)}
    if error_message is not None:
        fields["error_message"] = error_message
    return docstore.update_document(doc_id, **fields)


def download_url(
    docstore: DocStore,
    blobstore: BlobStore,
    doc_id: str,
    expires_in_minutes: int | None = None,
) -> tuple[str, str]:
    """Signed download URL and a suggested file name for a document."""
    doc = get_document(docstore, doc_id)
    ttl = expires_in_minutes or get_settings().blobstore.url_ttl_minutes
    url = blobstore.signed_url(doc.blob_name, ttl)
    return url, f"{doc.title}.{doc.file_type.value}"

"""Exception hierarchy shared by the stores, pipeline and CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from policydesk.models import Document, DocumentStatus


class PolicyDeskError(Exception):
    """Base class for all errors raised by policydesk."""


class ConfigurationError(PolicyDeskError):
    """A required credential or setting is missing."""


class UploadRejected(PolicyDeskError):
    """An upload failed validation before anything was stored."""


class ResponseParseError(PolicyDeskError):
    """The retrieval service returned a response we cannot use."""


class DocumentNotFoundError(PolicyDeskError):
    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class InvalidStatusTransition(PolicyDeskError):
    def __init__(self, current: DocumentStatus, new: DocumentStatus):
        super().__init__(f"Cannot move document from '{current.value}' to '{new.value}'")
        self.current = current
        self.new = new


class IndexingError(PolicyDeskError):
    """Indexing a document failed. The document is left in the 'failed' state.

    ``document`` carries the failed record when the pipeline managed to
    persist it, so callers can show what was kept for inspection.
    """

    def __init__(self, document_id: str, message: str, document: Document | None = None):
        super().__init__(f"Indexing failed for document {document_id}: {message}")
        self.document_id = document_id
        self.reason = message
        self.document = document


class IndexingFailedError(PolicyDeskError):
    """The retrieval service reported an error for an indexing operation."""


class IndexingTimeoutError(PolicyDeskError):
    """An indexing operation did not finish within the polling budget."""


class SearchError(PolicyDeskError):
    """The retrieval service could not answer a query."""


class DeletionError(PolicyDeskError):
    """Removing a document's blob or record failed part way through."""

    def __init__(self, document_id: str, message: str):
        super().__init__(f"Deleting document {document_id} failed: {message}")
        self.document_id = document_id

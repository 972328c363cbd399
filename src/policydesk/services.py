"""Builds the stores, retrieval service and store registry from settings."""

from __future__ import annotations

from dataclasses import dataclass

from policydesk.config import Settings, get_settings
from policydesk.gemini.registry import StoreRegistry
from policydesk.gemini.service import GeminiRetrievalService, RetrievalService
from policydesk.stores.blobstore import BlobStore
from policydesk.stores.docstore import DocStore


@dataclass
class Services:
    docstore: DocStore
    blobstore: BlobStore
    retrieval: RetrievalService
    registry: StoreRegistry

    def close(self) -> None:
        self.docstore.close()


def build_services(
    settings: Settings | None = None,
    *,
    retrieval: RetrievalService | None = None,
) -> Services:
    """Wire collaborators. The Gemini client itself is only built on first remote call."""
    settings = settings or get_settings()
    docstore = DocStore(settings.docstore.path)
    blobstore = BlobStore(settings.blobstore.path)
    retrieval = retrieval or GeminiRetrievalService(model=settings.gemini.model)
    registry = StoreRegistry(docstore, retrieval, settings.gemini.store_display_name)
    return Services(docstore, blobstore, retrieval, registry)

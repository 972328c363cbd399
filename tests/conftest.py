"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from policydesk.models import Answer, IndexingOperation

# Ensure tests run from the project root so config.default.yaml is found
PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture(autouse=True)
def _set_project_root(monkeypatch, tmp_path):
    """Point POLICYDESK_ROOT at the project root and use tmp_path for data."""
    monkeypatch.setenv("POLICYDESK_ROOT", str(PROJECT_ROOT))
    monkeypatch.setenv("POLICYDESK_DOCSTORE__PATH", str(tmp_path / "docstore.db"))
    monkeypatch.setenv("POLICYDESK_BLOBSTORE__PATH", str(tmp_path / "blobs"))
    monkeypatch.setenv("POLICYDESK_BLOBSTORE__SIGNING_KEY", "test-signing-key")
    monkeypatch.setenv("POLICYDESK_INDEXING__POLL_INTERVAL", "0")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("POLICYDESK_GEMINI__API_KEY", raising=False)

    # Reset cached settings and client between tests
    from policydesk.config import reset_settings
    from policydesk.gemini.client import reset_client
    reset_settings()
    reset_client()


class FakeRetrievalService:
    """In-memory RetrievalService with scripted poll results."""

    def __init__(
        self,
        polls: list[IndexingOperation] | None = None,
        *,
        answer: Answer | None = None,
        delete_error: Exception | None = None,
    ):
        self.polls = list(polls or [])
        self.answer_result = answer or Answer(text="No answer generated")
        self.delete_error = delete_error
        self.stores_created: list[str] = []
        self.ingested: list[dict] = []
        self.poll_count = 0
        self.deleted: list[str] = []
        self.prompts: list[tuple[str, str]] = []

    async def create_store(self, display_name: str) -> str:
        name = f"fileSearchStores/store-{len(self.stores_created) + 1}"
        self.stores_created.append(name)
        return name

    async def ingest(self, data, content_type, display_name, metadata, store_name):
        self.ingested.append(
            {
                "data": data,
                "content_type": content_type,
                "display_name": display_name,
                "metadata": metadata,
                "store_name": store_name,
            }
        )
        return IndexingOperation(name="operations/op-1")

    async def poll(self, operation):
        self.poll_count += 1
        if self.polls:
            return self.polls.pop(0)
        return operation

    async def delete_indexed(self, document_name: str) -> None:
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(document_name)

    async def answer(self, prompt: str, store_name: str) -> Answer:
        self.prompts.append((prompt, store_name))
        return self.answer_result


@pytest.fixture
def docstore(tmp_path):
    from policydesk.stores.docstore import DocStore

    db = DocStore(str(tmp_path / "docstore.db"))
    yield db
    db.close()


@pytest.fixture
def blobstore(tmp_path):
    from policydesk.stores.blobstore import BlobStore

    return BlobStore(str(tmp_path / "blobs"), signing_key="test-signing-key")


@pytest.fixture
def fake_service():
    return FakeRetrievalService()

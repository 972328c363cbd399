"""Retrieval service contract and its Gemini File Search implementation.

SDK responses are converted into the explicit models in ``policydesk.models``
as soon as they arrive; anything missing a required field raises
ResponseParseError instead of leaking ``None`` further in.
"""

from __future__ import annotations

import io
import logging
from typing import Any, Protocol

from google import genai
from google.genai import types

from policydesk.config import get_settings
from policydesk.errors import ResponseParseError
from policydesk.models import Answer, GroundingFragment, GroundingSupport, IndexingOperation

log = logging.getLogger(__name__)

NO_ANSWER = "No answer generated"


class RetrievalService(Protocol):
    async def create_store(self, display_name: str) -> str: ...

    async def ingest(
        self,
        data: bytes,
        content_type: str,
        display_name: str,
        metadata: dict[str, str],
        store_name: str,
    ) -> IndexingOperation: ...

    async def poll(self, operation: IndexingOperation) -> IndexingOperation: ...

    async def delete_indexed(self, document_name: str) -> None: ...

    async def answer(self, prompt: str, store_name: str) -> Answer: ...


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _error_message(error: Any) -> str | None:
    if not error:
        return None
    if isinstance(error, dict):
        message = error.get("message")
    else:
        message = getattr(error, "message", None)
    return str(message or error)


def parse_operation(op: Any) -> IndexingOperation:
    """Convert an SDK upload operation into an IndexingOperation."""
    name = getattr(op, "name", None)
    if not name:
        raise ResponseParseError("Indexing operation has no name")

    response = getattr(op, "response", None)
    return IndexingOperation(
        name=name,
        done=bool(getattr(op, "done", False)),
        error=_error_message(getattr(op, "error", None)),
        document_name=getattr(response, "document_name", None) if response else None,
    )


def parse_fragment(chunk: Any) -> GroundingFragment:
    """Pull reference, title and text out of one grounding chunk.

    File Search results arrive as ``retrieved_context``; web grounding as
    ``web``. The document name is preferred over the URI when the SDK
    provides it because it equals the handle stored at ingest time.
    """
    ctx = getattr(chunk, "retrieved_context", None)
    web = getattr(chunk, "web", None)

    ref = ""
    for source in (ctx, web):
        if source is None:
            continue
        ref = getattr(source, "document_name", None) or getattr(source, "uri", None) or ""
        if ref:
            break

    title = (getattr(web, "title", None) if web else None) or (
        getattr(ctx, "title", None) if ctx else None
    )
    text = getattr(ctx, "text", None) if ctx else None
    return GroundingFragment(ref=ref, title=title or None, text=text)


def parse_answer(response: Any) -> Answer:
    """Convert a generate_content response into an Answer."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        raise ResponseParseError("No response from Gemini")
    candidate = candidates[0]

    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []
    text = "".join(p.text for p in parts if getattr(p, "text", None))

    grounding = getattr(candidate, "grounding_metadata", None)
    chunks = getattr(grounding, "grounding_chunks", None) or []
    supports = getattr(grounding, "grounding_supports", None) or []

    return Answer(
        text=text or NO_ANSWER,
        fragments=[parse_fragment(c) for c in chunks],
        supports=[
            GroundingSupport(
                text=getattr(s.segment, "text", None) or "",
                start_index=getattr(s.segment, "start_index", None),
                end_index=getattr(s.segment, "end_index", None),
                fragment_indices=list(s.grounding_chunk_indices or []),
            )
            for s in supports
            if getattr(s, "segment", None) is not None
        ],
    )


# ---------------------------------------------------------------------------
# Gemini implementation
# ---------------------------------------------------------------------------

class GeminiRetrievalService:
    """Gemini File Search behind the RetrievalService contract."""

    def __init__(self, client: genai.Client | None = None, *, model: str | None = None):
        self._client = client
        self.model = model or get_settings().gemini.model

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            from policydesk.gemini.client import get_client

            self._client = get_client()
        return self._client

    async def create_store(self, display_name: str) -> str:
        store = await self.client.aio.file_search_stores.create(
            config={"display_name": display_name}
        )
        if not getattr(store, "name", None):
            raise ResponseParseError("Failed to create File Search Store - no name returned")
        log.info("Created Gemini File Search Store: %s", store.name)
        return store.name

    async def ingest(
        self,
        data: bytes,
        content_type: str,
        display_name: str,
        metadata: dict[str, str],
        store_name: str,
    ) -> IndexingOperation:
        op = await self.client.aio.file_search_stores.upload_to_file_search_store(
            file=io.BytesIO(data),
            file_search_store_name=store_name,
            config={
                "display_name": display_name,
                "mime_type": content_type,
                "custom_metadata": [
                    {"key": key, "string_value": value} for key, value in metadata.items()
                ],
            },
        )
        return parse_operation(op)

    async def poll(self, operation: IndexingOperation) -> IndexingOperation:
        op = await self.client.aio.operations.get(
            types.UploadToFileSearchStoreOperation(name=operation.name)
        )
        return parse_operation(op)

    async def delete_indexed(self, document_name: str) -> None:
        await self.client.aio.file_search_stores.documents.delete(
            name=document_name, config={"force": True}
        )
        log.info("Deleted document from Gemini: %s", document_name)

    async def answer(self, prompt: str, store_name: str) -> Answer:
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                tools=[
                    types.Tool(
                        file_search=types.FileSearch(file_search_store_names=[store_name])
                    )
                ]
            ),
        )
        return parse_answer(response)

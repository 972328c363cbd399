"""Search engine: File Search answer + citation resolution."""

from __future__ import annotations

import logging

from policydesk.config import Settings, get_settings
from policydesk.errors import PolicyDeskError, SearchError
from policydesk.gemini.registry import StoreRegistry
from policydesk.gemini.service import RetrievalService
from policydesk.models import SearchResult
from policydesk.search.citations import renumber_markers, resolve_citations
from policydesk.stores.docstore import DocStore

log = logging.getLogger(__name__)


def build_prompt(query: str, system_prompt: str) -> str:
    return f"{system_prompt}\n\nUser question: {query}"


async def search(
    query: str,
    docstore: DocStore,
    service: RetrievalService,
    registry: StoreRegistry,
    *,
    settings: Settings | None = None,
) -> SearchResult:
    """Answer *query* from the indexed documents, with deduplicated citations."""
    query = (query or "").strip()
    if not query:
        raise ValueError("Query is required")

    cfg = settings or get_settings()
    try:
        store_name = await registry.get_or_create()
        answer = await service.answer(build_prompt(query, cfg.prompts.system_prompt), store_name)
    except PolicyDeskError:
        raise
    except Exception as e:
        log.exception("Gemini search failed")
        raise SearchError(f"Gemini answer failed: {e}") from e

    citations, fragment_map = resolve_citations(answer.fragments, docstore.list_documents())
    log.info(
        "Answered query with %d fragments -> %d citations",
        len(answer.fragments),
        len(citations),
    )

    return SearchResult(
        query=query,
        answer=answer.text,
        rendered_answer=renumber_markers(answer.text, fragment_map),
        citations=citations,
        fragment_map=fragment_map,
        supports=answer.supports,
    )

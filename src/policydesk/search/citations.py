"""Map grounding fragments back to documents and renumber them as citations.

Fragments arrive in the order the model cited them, one per retrieved
chunk, so the same document usually shows up several times. The answer text
refers to fragments by 1-based position (``[3]``); ``resolve_citations``
collapses fragments per document and returns the position -> citation
number map needed to rewrite those markers.
"""

from __future__ import annotations

import logging
import re

from policydesk.models import Citation, Document, GroundingFragment

log = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Document"

_EXTENSION_RE = re.compile(r"\.(pdf|docx?|txt)$", re.IGNORECASE)
_MARKER_RE = re.compile(r"\[(\d+)\]")


def strip_extension(title: str) -> str:
    return _EXTENSION_RE.sub("", title)


def match_document(
    fragment: GroundingFragment, documents: list[Document]
) -> Document | None:
    """Find the document a fragment came from.

    Tried in order, first hit wins: retrieval handle, exact title,
    case-insensitive title, case-insensitive title without file extension.
    """
    if fragment.ref:
        for doc in documents:
            if doc.gemini_document_id == fragment.ref:
                return doc

    title = fragment.title
    if not title:
        return None

    for doc in documents:
        if doc.title == title:
            return doc

    folded = title.lower()
    for doc in documents:
        if doc.title.lower() == folded:
            return doc

    bare = strip_extension(title).lower()
    for doc in documents:
        if strip_extension(doc.title).lower() == bare:
            return doc

    log.warning('No match found for fragment title: "%s"', title)
    return None


def _group_key(position: int, fragment: GroundingFragment, doc: Document | None) -> str:
    if doc is not None:
        return f"doc:{doc.id}"
    if fragment.ref:
        return f"ref:{fragment.ref}"
    if fragment.title:
        return f"title:{fragment.title}"
    return f"fragment:{position}"


def resolve_citations(
    fragments: list[GroundingFragment], documents: list[Document]
) -> tuple[list[Citation], dict[int, int]]:
    """Deduplicate fragments per document and number the results.

    Returns:
        citations: one per distinct document, numbered from 1 in order of
            first appearance. Unresolved fragments keep their raw reference
            as ``document_id`` rather than being dropped.
        fragment_map: original fragment position -> citation index.
    """
    grouped: dict[str, Citation] = {}

    for position, fragment in enumerate(fragments):
        doc = match_document(fragment, documents)
        key = _group_key(position, fragment, doc)

        citation = grouped.get(key)
        if citation is None:
            grouped[key] = Citation(
                document_id=doc.id if doc else fragment.ref,
                title=(doc.title if doc else None) or fragment.title or UNKNOWN_TITLE,
                snippet=fragment.text or "",
                index=len(grouped) + 1,
                fragment_indices=[position],
            )
        else:
            citation.fragment_indices.append(position)

    citations = list(grouped.values())
    fragment_map = {
        position: citation.index
        for citation in citations
        for position in citation.fragment_indices
    }
    return citations, fragment_map


def renumber_markers(text: str, fragment_map: dict[int, int]) -> str:
    """Rewrite ``[k]`` fragment markers as deduplicated citation numbers.

    ``k`` is the 1-based fragment position. Markers with no mapping are left
    as they are.
    """

    def _sub(match: re.Match) -> str:
        index = fragment_map.get(int(match.group(1)) - 1)
        return f"[{index}]" if index is not None else match.group(0)

    return _MARKER_RE.sub(_sub, text)

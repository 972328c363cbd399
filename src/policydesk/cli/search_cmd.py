"""policydesk search: ask questions across all indexed documents."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from policydesk.cli.output import fail, is_json
from policydesk.errors import PolicyDeskError


def search_cmd(
    query: Annotated[str, typer.Argument(help="Question to ask about your policies")],
    snippet_length: Annotated[
        int, typer.Option("--snippet-length", help="Characters of each snippet to show")
    ] = 150,
):
    """Ask a question and print the answer with deduplicated citations."""
    from policydesk.search.engine import search
    from policydesk.services import build_services

    if not query.strip():
        fail("Query is required", code=2)

    services = build_services()
    try:
        result = asyncio.run(
            search(query, services.docstore, services.retrieval, services.registry)
        )
    except PolicyDeskError as e:
        fail(f"Search failed: {e}")
    finally:
        services.close()

    if is_json():
        print(json.dumps({"status": "ok", **result.model_dump(mode="json")}, indent=2))
        return

    console = Console()
    console.print(Panel(Markdown(result.rendered_answer), title="Answer", border_style="green"))

    if result.citations:
        console.print("\n[bold]Sources:[/bold]")
        for c in result.citations:
            snippet = c.snippet
            if len(snippet) > snippet_length:
                snippet = snippet[:snippet_length] + "..."
            console.print(f"  [{c.index}] {c.title} [dim]({c.document_id})[/dim]")
            if snippet:
                console.print(f"      [dim]{snippet}[/dim]")

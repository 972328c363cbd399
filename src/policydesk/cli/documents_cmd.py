"""policydesk document commands: upload, list, show, status, delete, url."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from policydesk.cli.output import fail, is_json, setup_logging
from policydesk.errors import IndexingError, PolicyDeskError
from policydesk.models import Document

_STATUS_STYLE = {"processing": "yellow", "ready": "green", "failed": "red"}


def _print_document(doc: Document) -> None:
    if is_json():
        print(json.dumps({"status": "ok", "document": doc.model_dump(mode="json")}, indent=2))
        return

    table = Table(title=doc.title, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for field, value in doc.model_dump(mode="json").items():
        if value is None:
            continue
        if field == "status":
            value = f"[{_STATUS_STYLE[value]}]{value}[/{_STATUS_STYLE[value]}]"
        table.add_row(field, str(value))
    Console().print(table)


def upload_cmd(
    path: Annotated[Path, typer.Argument(help="File to upload")],
    title: Annotated[str, typer.Option("--title", "-t", help="Document title")],
    category: Annotated[str, typer.Option("--category", "-c", help="Policy category")],
    version: Annotated[str, typer.Option("--version", "-v", help="Document version")],
):
    """Upload a document and wait until Gemini has indexed it."""
    from policydesk.documents import validate_upload
    from policydesk.indexing.pipeline import ingest_document
    from policydesk.services import build_services

    setup_logging()

    if not path.is_file():
        fail(f"Path not found: {path}")

    data = path.read_bytes()
    try:
        metadata = validate_upload(path.name, len(data), title, category, version)
    except PolicyDeskError as e:
        fail(str(e), code=2)

    services = build_services()
    try:
        doc = asyncio.run(
            ingest_document(
                data,
                path.name,
                metadata,
                services.docstore,
                services.blobstore,
                services.retrieval,
                services.registry,
            )
        )
    except IndexingError as e:
        document = e.document.model_dump(mode="json") if e.document else None
        fail(str(e), document=document)
    except PolicyDeskError as e:
        fail(str(e))
    finally:
        services.close()

    _print_document(doc)


def list_cmd():
    """List all documents, newest first."""
    from policydesk.documents import list_documents
    from policydesk.services import build_services

    services = build_services()
    try:
        docs = list_documents(services.docstore)
    finally:
        services.close()

    if is_json():
        print(
            json.dumps(
                {"status": "ok", "documents": [d.model_dump(mode="json") for d in docs]},
                indent=2,
            )
        )
        return

    console = Console()
    if not docs:
        console.print("[yellow]No documents uploaded yet.[/yellow]")
        return

    table = Table(title=f"{len(docs)} document(s)")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Version")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Status")

    for d in docs:
        style = _STATUS_STYLE[d.status.value]
        table.add_row(
            d.id,
            d.title,
            d.category,
            d.version,
            d.file_type.value,
            d.file_size,
            f"[{style}]{d.status.value}[/{style}]",
        )
    console.print(table)


def show_cmd(doc_id: Annotated[str, typer.Argument(help="Document ID")]):
    """Show one document."""
    from policydesk.documents import get_document
    from policydesk.services import build_services

    services = build_services()
    try:
        doc = get_document(services.docstore, doc_id)
    except PolicyDeskError as e:
        fail(str(e))
    finally:
        services.close()

    _print_document(doc)


def status_cmd(
    doc_id: Annotated[str, typer.Argument(help="Document ID")],
    status: Annotated[str, typer.Argument(help="processing, ready or failed")],
    error: Annotated[
        Optional[str], typer.Option("--error", "-e", help="Error message for 'failed'")
    ] = None,
):
    """Set a document's status. Only processing -> ready/failed is allowed."""
    from policydesk.documents import update_status
    from policydesk.models import DocumentStatus
    from policydesk.services import build_services

    if status not in {s.value for s in DocumentStatus}:
        fail("Invalid status", code=2)

    services = build_services()
    try:
        doc = update_status(services.docstore, doc_id, status, error)
    except (PolicyDeskError, ValueError) as e:
        fail(str(e))
    finally:
        services.close()

    _print_document(doc)


def delete_cmd(doc_id: Annotated[str, typer.Argument(help="Document ID")]):
    """Delete a document's blob, Gemini entry and metadata record."""
    from policydesk.indexing.pipeline import remove_document
    from policydesk.services import build_services

    setup_logging()

    services = build_services()
    try:
        asyncio.run(
            remove_document(doc_id, services.docstore, services.blobstore, services.retrieval)
        )
    except PolicyDeskError as e:
        fail(str(e))
    finally:
        services.close()

    if is_json():
        print(json.dumps({"status": "ok", "deleted": doc_id}, indent=2))
    else:
        Console().print(f"[green]Deleted[/green] {doc_id}")


def url_cmd(
    doc_id: Annotated[str, typer.Argument(help="Document ID")],
    minutes: Annotated[
        Optional[int], typer.Option("--minutes", "-m", help="Link lifetime in minutes")
    ] = None,
):
    """Print a time-limited download URL for a document."""
    from policydesk.documents import download_url
    from policydesk.services import build_services

    services = build_services()
    try:
        url, file_name = download_url(services.docstore, services.blobstore, doc_id, minutes)
    except PolicyDeskError as e:
        fail(str(e))
    finally:
        services.close()

    if is_json():
        print(json.dumps({"status": "ok", "download_url": url, "file_name": file_name}, indent=2))
    else:
        typer.echo(url)

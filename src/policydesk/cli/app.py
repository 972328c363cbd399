"""policydesk CLI: Typer entrypoint with global options."""

from __future__ import annotations

import os
from typing import Annotated, Optional

import typer

from policydesk.cli.output import set_json

app = typer.Typer(
    name="policydesk",
    help="Upload policy documents and ask questions with cited answers.",
    no_args_is_help=True,
)


@app.callback()
def main(
    json_output: Annotated[
        bool, typer.Option("--json", help="Output as JSON (agent-friendly)")
    ] = False,
    root: Annotated[
        Optional[str], typer.Option("--root", help="Override project root directory")
    ] = None,
):
    """Global options applied before any subcommand."""
    set_json(json_output)
    if root:
        os.environ["POLICYDESK_ROOT"] = root
        from policydesk.config import reset_settings

        reset_settings()


# Register subcommands -------------------------------------------------------

from policydesk.cli.doctor import doctor_cmd  # noqa: E402
from policydesk.cli.documents_cmd import (  # noqa: E402
    delete_cmd,
    list_cmd,
    show_cmd,
    status_cmd,
    upload_cmd,
    url_cmd,
)
from policydesk.cli.search_cmd import search_cmd  # noqa: E402

app.command(name="upload", help="Upload and index a policy document.")(upload_cmd)
app.command(name="list", help="List documents, newest first.")(list_cmd)
app.command(name="show", help="Show one document.")(show_cmd)
app.command(name="status", help="Manually set a document's status.")(status_cmd)
app.command(name="delete", help="Delete a document everywhere it is stored.")(delete_cmd)
app.command(name="url", help="Print a signed download URL.")(url_cmd)
app.command(name="search", help="Ask a question across all documents.")(search_cmd)
app.command(name="doctor", help="Check configuration and connectivity.")(doctor_cmd)

"""policydesk doctor: validate config, storage, and Gemini credentials."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from policydesk.cli.output import is_json


async def _check_config() -> tuple[bool, str]:
    """Verify config loads without error."""
    try:
        from policydesk.config import get_settings
        settings = get_settings()
        return True, f"model={settings.gemini.model}, store={settings.gemini.store_display_name}"
    except Exception as e:
        return False, str(e)


async def _check_credentials() -> tuple[bool, str]:
    """Check that the Gemini key and blob signing key are set."""
    from policydesk.config import get_settings
    settings = get_settings()
    missing = []
    if not settings.gemini_api_key:
        missing.append("GEMINI_API_KEY")
    if not settings.blobstore.signing_key:
        missing.append("POLICYDESK_BLOBSTORE__SIGNING_KEY")
    if missing:
        return False, f"missing: {', '.join(missing)}"
    return True, "Gemini API key and blob signing key set"


async def _check_data_dirs() -> tuple[bool, str]:
    """Verify data directories are writable."""
    try:
        from policydesk.config import get_settings
        settings = get_settings()
        dirs = [
            Path(settings.blobstore.path),
            Path(settings.docstore.path).parent,
        ]
        for d in dirs:
            d.mkdir(parents=True, exist_ok=True)
        return True, "all data directories writable"
    except Exception as e:
        return False, str(e)


async def _check_store() -> tuple[bool, str]:
    """Show which File Search Store is registered, without creating one."""
    try:
        from policydesk.config import get_settings
        from policydesk.gemini.registry import REGISTRATION_KEY
        from policydesk.stores.docstore import DocStore
        docstore = DocStore(get_settings().docstore.path)
        try:
            reg = docstore.get_registration(REGISTRATION_KEY)
        finally:
            docstore.close()
        if reg is None:
            return True, "not created yet (created on first upload or search)"
        return True, reg.store_name
    except Exception as e:
        return False, str(e)


async def _check_gemini() -> tuple[bool, str]:
    """List File Search Stores to prove the key works."""
    try:
        from policydesk.gemini.client import get_client
        pager = await get_client().aio.file_search_stores.list()
        count = sum([1 async for _ in pager])
        return True, f"connected ({count} store(s) visible)"
    except Exception as e:
        return False, str(e)


async def _run_checks() -> list[dict]:
    """Run all checks and return results."""
    checks = [
        ("Config", _check_config),
        ("Credentials", _check_credentials),
        ("Data Dirs", _check_data_dirs),
        ("Store Registration", _check_store),
        ("Gemini", _check_gemini),
    ]
    results = []
    for name, check_fn in checks:
        ok, detail = await check_fn()
        results.append({"check": name, "ok": ok, "detail": detail})
    return results


def doctor_cmd():
    """Check system health and connectivity."""
    results = asyncio.run(_run_checks())

    if is_json():
        print(json.dumps(results, indent=2))
        return

    console = Console()
    table = Table(title="policydesk doctor", show_lines=True)
    table.add_column("Check", style="bold")
    table.add_column("Status")
    table.add_column("Detail")

    all_ok = True
    for r in results:
        status = "[green]PASS[/green]" if r["ok"] else "[red]FAIL[/red]"
        if not r["ok"]:
            all_ok = False
        table.add_row(r["check"], status, r["detail"])

    console.print(table)
    if all_ok:
        console.print("\n[bold green]All checks passed.[/bold green]")
    else:
        console.print("\n[bold yellow]Some checks failed. See details above.[/bold yellow]")
        raise typer.Exit(code=1)

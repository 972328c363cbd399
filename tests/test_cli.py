"""Tests for the policydesk CLI, wired to an in-memory retrieval service."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from policydesk.cli.app import app
from policydesk.models import Answer, GroundingFragment, IndexingOperation
from policydesk.services import build_services
from policydesk.stores.blobstore import BlobStore

from conftest import FakeRetrievalService

runner = CliRunner()


@pytest.fixture
def fake():
    return FakeRetrievalService(
        [IndexingOperation(name="operations/op-1", done=True, document_name="docs/handbook")],
        answer=Answer(
            text="Staff get 25 days [1][2].",
            fragments=[
                GroundingFragment(ref="docs/handbook", text="25 days of annual leave"),
                GroundingFragment(ref="docs/handbook", text="carry over 5 days"),
            ],
        ),
    )


@pytest.fixture
def cli(fake):
    with patch(
        "policydesk.services.build_services",
        side_effect=lambda: build_services(retrieval=fake),
    ):
        yield


def _invoke(*args):
    result = runner.invoke(app, ["--json", *args])
    return result, (json.loads(result.stdout) if result.stdout.strip() else None)


def test_upload_list_search_delete(cli, fake, tmp_path):
    pdf = tmp_path / "handbook.pdf"
    pdf.write_bytes(b"%PDF-1.7 handbook")

    result, payload = _invoke("upload", str(pdf), "-t", "Handbook", "-c", "HR", "-v", "2024")
    assert result.exit_code == 0, result.output
    doc = payload["document"]
    assert doc["status"] == "ready"
    assert doc["gemini_document_id"] == "docs/handbook"
    assert doc["file_size"] == "17 Bytes"

    result, payload = _invoke("list")
    assert [d["id"] for d in payload["documents"]] == [doc["id"]]

    result, payload = _invoke("search", "How much leave?")
    assert result.exit_code == 0, result.output
    assert payload["rendered_answer"] == "Staff get 25 days [1][1]."
    assert len(payload["citations"]) == 1
    assert payload["citations"][0]["title"] == "Handbook"

    result, payload = _invoke("url", doc["id"])
    assert payload["file_name"] == "Handbook.pdf"

    result, payload = _invoke("delete", doc["id"])
    assert result.exit_code == 0
    assert fake.deleted == ["docs/handbook"]

    result, payload = _invoke("show", doc["id"])
    assert result.exit_code == 1
    assert payload["status"] == "error"


def test_upload_rejects_unsupported_type(cli, fake, tmp_path):
    txt = tmp_path / "notes.txt"
    txt.write_text("hello")

    result, payload = _invoke("upload", str(txt), "-t", "Notes", "-c", "HR", "-v", "1")
    assert result.exit_code == 2
    assert "PDF, DOCX, DOC" in payload["error"]
    assert fake.ingested == []


def test_upload_reports_failed_document(cli, tmp_path):
    failing = FakeRetrievalService(
        [IndexingOperation(name="operations/op-1", done=True, error="unsupported encoding")]
    )
    pdf = tmp_path / "bad.pdf"
    pdf.write_bytes(b"%PDF")

    with patch(
        "policydesk.services.build_services",
        side_effect=lambda: build_services(retrieval=failing),
    ):
        result, payload = _invoke("upload", str(pdf), "-t", "Bad", "-c", "HR", "-v", "1")

    assert result.exit_code == 1
    assert payload["document"]["status"] == "failed"
    assert "unsupported encoding" in payload["document"]["error_message"]


def test_status_rejects_unknown_value(cli):
    result, payload = _invoke("status", "123", "archived")
    assert result.exit_code == 2
    assert payload["error"] == "Invalid status"


def test_search_requires_query(cli):
    result, payload = _invoke("search", "   ")
    assert result.exit_code == 2


def test_search_reports_service_failure(cli, fake):
    async def answer(prompt, store_name):
        raise RuntimeError("503 UNAVAILABLE")

    fake.answer = answer
    result, payload = _invoke("search", "How much leave?")

    assert result.exit_code == 1
    assert payload["status"] == "error"
    assert "503 UNAVAILABLE" in payload["error"]


def test_delete_reports_blob_store_failure(cli, fake, tmp_path):
    pdf = tmp_path / "handbook.pdf"
    pdf.write_bytes(b"%PDF")
    _, payload = _invoke("upload", str(pdf), "-t", "Handbook", "-c", "HR", "-v", "1")
    doc_id = payload["document"]["id"]

    with patch.object(BlobStore, "delete", side_effect=OSError("disk unavailable")):
        result, payload = _invoke("delete", doc_id)

    assert result.exit_code == 1
    assert payload["status"] == "error"
    assert doc_id in payload["error"]

    result, payload = _invoke("show", doc_id)
    assert payload["document"]["status"] == "ready"

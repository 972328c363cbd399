"""Tests for policydesk.stores.docstore."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from policydesk.errors import DocumentNotFoundError, InvalidStatusTransition
from policydesk.models import Document, DocumentStatus, FileType, StoreRegistration


@pytest.fixture
def sample_doc():
    return Document(
        id="0000000000000001",
        title="Employee Handbook",
        category="HR",
        version="2024.1",
        file_type=FileType.PDF,
        file_size="1.5 KB",
        storage_uri="file:///tmp/blobs/0000000000000001-handbook.pdf",
        blob_name="0000000000000001-handbook.pdf",
    )


def test_create_and_get_document(docstore, sample_doc):
    docstore.create_document(sample_doc)
    retrieved = docstore.get_document(sample_doc.id)
    assert retrieved == sample_doc
    assert retrieved.status == DocumentStatus.PROCESSING


def test_create_duplicate_id_fails(docstore, sample_doc):
    import sqlite3

    docstore.create_document(sample_doc)
    with pytest.raises(sqlite3.IntegrityError):
        docstore.create_document(sample_doc)


def test_get_missing_document(docstore):
    assert docstore.get_document("nonexistent") is None


def test_list_documents(docstore, sample_doc):
    docstore.create_document(sample_doc)
    docs = docstore.list_documents()
    assert [d.id for d in docs] == [sample_doc.id]


def test_update_to_ready(docstore, sample_doc):
    docstore.create_document(sample_doc)
    updated = docstore.update_document(
        sample_doc.id,
        status=DocumentStatus.READY,
        gemini_document_id="files/abc",
        gemini_store_name="fileSearchStores/s",
    )
    assert updated.status == DocumentStatus.READY
    assert docstore.get_document(sample_doc.id) == updated


def test_update_missing_document(docstore):
    with pytest.raises(DocumentNotFoundError):
        docstore.update_document("nope", title="x")


def test_update_rejects_unknown_fields(docstore, sample_doc):
    docstore.create_document(sample_doc)
    with pytest.raises(ValueError, match="bogus"):
        docstore.update_document(sample_doc.id, bogus=1)
    with pytest.raises(ValueError, match="id"):
        docstore.update_document(sample_doc.id, id="other")


def test_ready_requires_gemini_id(docstore, sample_doc):
    docstore.create_document(sample_doc)
    with pytest.raises(ValidationError):
        docstore.update_document(sample_doc.id, status=DocumentStatus.READY)
    assert docstore.get_document(sample_doc.id).status == DocumentStatus.PROCESSING


def test_failed_requires_error_message(docstore, sample_doc):
    docstore.create_document(sample_doc)
    with pytest.raises(ValidationError):
        docstore.update_document(sample_doc.id, status=DocumentStatus.FAILED)


@pytest.mark.parametrize(
    "terminal, fields, new",
    [
        (DocumentStatus.READY, {"gemini_document_id": "files/abc"}, DocumentStatus.FAILED),
        (DocumentStatus.READY, {"gemini_document_id": "files/abc"}, DocumentStatus.PROCESSING),
        (DocumentStatus.FAILED, {"error_message": "boom"}, DocumentStatus.READY),
        (DocumentStatus.FAILED, {"error_message": "boom"}, DocumentStatus.PROCESSING),
        (DocumentStatus.READY, {"gemini_document_id": "files/abc"}, DocumentStatus.READY),
        (DocumentStatus.FAILED, {"error_message": "boom"}, DocumentStatus.FAILED),
    ],
)
def test_final_status_is_never_changed(docstore, sample_doc, terminal, fields, new):
    docstore.create_document(sample_doc)
    docstore.update_document(sample_doc.id, status=terminal, **fields)

    with pytest.raises(InvalidStatusTransition):
        docstore.update_document(
            sample_doc.id,
            status=new,
            gemini_document_id="files/abc",
            error_message="boom",
        )
    assert docstore.get_document(sample_doc.id).status == terminal


def test_delete_document(docstore, sample_doc):
    docstore.create_document(sample_doc)
    docstore.delete_document(sample_doc.id)
    assert docstore.get_document(sample_doc.id) is None


def test_registration_insert_if_absent(docstore):
    first = StoreRegistration(key="file-search-store", store_name="s/1", display_name="pgc")
    second = StoreRegistration(key="file-search-store", store_name="s/2", display_name="pgc")

    assert docstore.get_registration("file-search-store") is None
    assert docstore.add_registration(first) is True
    assert docstore.add_registration(second) is False
    assert docstore.get_registration("file-search-store").store_name == "s/1"


def test_data_survives_reopen(tmp_path, sample_doc):
    from policydesk.stores.docstore import DocStore

    path = str(tmp_path / "reopen.db")
    db = DocStore(path)
    db.create_document(sample_doc)
    db.close()

    db = DocStore(path)
    assert db.get_document(sample_doc.id) == sample_doc
    db.close()


def test_failed_record_keeps_its_first_error(docstore, sample_doc):
    docstore.create_document(sample_doc)
    docstore.update_document(sample_doc.id, status=DocumentStatus.FAILED, error_message="first")

    with pytest.raises(InvalidStatusTransition):
        docstore.update_document(sample_doc.id, error_message="second")
    assert docstore.get_document(sample_doc.id).error_message == "first"

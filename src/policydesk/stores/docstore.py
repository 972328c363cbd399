"""SQLite-backed document metadata and store-registration tables."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

from policydesk.errors import DocumentNotFoundError, InvalidStatusTransition
from policydesk.models import Document, DocumentStatus, StoreRegistration

_DOC_COLUMNS = tuple(Document.model_fields)


class DocStore:
    """Stores one record per uploaded document in SQLite.

    Each call is a single-row operation; nothing here spans more than one
    record, so callers compensate for partial failures themselves.
    """

    def __init__(self, db_path: str = "./data/docstore.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._init_tables()

    def _init_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                id                 TEXT PRIMARY KEY,
                title              TEXT NOT NULL,
                category           TEXT NOT NULL,
                version            TEXT NOT NULL,
                file_type          TEXT NOT NULL,
                file_size          TEXT NOT NULL,
                storage_uri        TEXT NOT NULL,
                blob_name          TEXT NOT NULL,
                status             TEXT NOT NULL,
                gemini_document_id TEXT,
                gemini_store_name  TEXT,
                error_message      TEXT,
                created_at         TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS store_registrations (
                key          TEXT PRIMARY KEY,
                store_name   TEXT NOT NULL,
                display_name TEXT NOT NULL,
                created_at   TEXT NOT NULL
            );
        """)
        self._conn.commit()

    # -- Documents -----------------------------------------------------------

    def create_document(self, doc: Document) -> Document:
        """Insert a new document record. Fails if the ID is already taken."""
        row = self._doc_to_row(doc)
        placeholders = ", ".join("?" for _ in _DOC_COLUMNS)
        self._conn.execute(
            f"INSERT INTO documents ({', '.join(_DOC_COLUMNS)}) VALUES ({placeholders})",
            tuple(row[c] for c in _DOC_COLUMNS),
        )
        self._conn.commit()
        return doc

    def get_document(self, doc_id: str) -> Document | None:
        """Fetch a document by ID."""
        row = self._conn.execute(
            "SELECT * FROM documents WHERE id = ?", (doc_id,)
        ).fetchone()
        return self._row_to_doc(row) if row else None

    def list_documents(self) -> list[Document]:
        """List all documents in storage order (callers sort)."""
        rows = self._conn.execute("SELECT * FROM documents").fetchall()
        return [self._row_to_doc(r) for r in rows]

    def update_document(self, doc_id: str, **fields: Any) -> Document:
        """Merge *fields* into an existing record and return the result.

        The merged record is re-validated, so a ready document without a
        retrieval handle or a failed one without a message is rejected. A ready
        or failed record cannot be updated at all.
        """
        current = self.get_document(doc_id)
        if current is None:
            raise DocumentNotFoundError(doc_id)

        unknown = set(fields) - (set(_DOC_COLUMNS) - {"id"})
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        if current.status.is_final:
            raise InvalidStatusTransition(
                current.status, DocumentStatus(fields.get("status", current.status))
            )

        updated = Document.model_validate({**current.model_dump(), **fields})

        row = self._doc_to_row(updated)
        columns = [c for c in _DOC_COLUMNS if c != "id"]
        self._conn.execute(
            f"UPDATE documents SET {', '.join(f'{c} = ?' for c in columns)} WHERE id = ?",
            (*(row[c] for c in columns), doc_id),
        )
        self._conn.commit()
        return updated

    def delete_document(self, doc_id: str) -> None:
        self._conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))
        self._conn.commit()

    # -- Store registration --------------------------------------------------

    def get_registration(self, key: str) -> StoreRegistration | None:
        row = self._conn.execute(
            "SELECT * FROM store_registrations WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        return StoreRegistration(
            key=row["key"],
            store_name=row["store_name"],
            display_name=row["display_name"],
            created_at=row["created_at"],
        )

    def add_registration(self, reg: StoreRegistration) -> bool:
        """Insert *reg* unless the key is already registered.

        Returns True if this call wrote the record.
        """
        cursor = self._conn.execute(
            """
            INSERT OR IGNORE INTO store_registrations
                (key, store_name, display_name, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (reg.key, reg.store_name, reg.display_name, reg.created_at.isoformat()),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        self._conn.close()

    # -- Helpers -------------------------------------------------------------

    @staticmethod
    def _doc_to_row(doc: Document) -> dict[str, Any]:
        row = doc.model_dump(mode="json")
        row["created_at"] = doc.created_at.isoformat()
        return row

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> Document:
        return Document.model_validate({c: row[c] for c in _DOC_COLUMNS})

"""Filesystem object store with expiring, token-signed download URLs."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import quote

from jose import JWTError, jwt

from policydesk.config import get_settings
from policydesk.errors import ConfigurationError
from policydesk.models import StoredBlob

TOKEN_ALGORITHM = "HS256"
TOKEN_AUDIENCE = "policydesk-blob"


class BlobStore:
    """Stores uploaded bytes as flat files under one directory.

    Content type and user metadata live in a ``<name>.meta.json`` sidecar.
    """

    def __init__(
        self,
        path: str | None = None,
        *,
        base_url: str | None = None,
        signing_key: str | None = None,
    ):
        cfg = get_settings().blobstore
        self.root = Path(path or cfg.path)
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = (base_url or cfg.base_url).rstrip("/")
        self._signing_key = signing_key or cfg.signing_key

    def _path(self, name: str) -> Path:
        if not name or Path(name).name != name or name in (".", ".."):
            raise ValueError(f"Invalid blob name: {name!r}")
        return self.root / name

    def _meta_path(self, name: str) -> Path:
        return self._path(name).with_name(f"{name}.meta.json")

    def put(
        self,
        name: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> StoredBlob:
        """Write a new blob. An existing blob with the same name is never overwritten."""
        path = self._path(name)
        with open(path, "xb") as f:
            f.write(data)
        self._meta_path(name).write_text(
            json.dumps({"content_type": content_type, "metadata": metadata or {}})
        )
        return StoredBlob(uri=path.resolve().as_uri(), blob_name=name)

    def get(self, name: str) -> bytes:
        return self._path(name).read_bytes()

    def exists(self, name: str) -> bool:
        return self._path(name).is_file()

    def metadata(self, name: str) -> dict:
        """Content type and user metadata stored alongside the blob."""
        return json.loads(self._meta_path(name).read_text())

    def delete(self, name: str) -> None:
        """Delete a blob and its sidecar. Missing blobs are not an error."""
        self._path(name).unlink(missing_ok=True)
        self._meta_path(name).unlink(missing_ok=True)

    # -- Signed URLs ---------------------------------------------------------

    def _key(self) -> str:
        if not self._signing_key:
            raise ConfigurationError(
                "Blob signing key is not configured (POLICYDESK_BLOBSTORE__SIGNING_KEY)"
            )
        return self._signing_key

    def signed_url(self, name: str, ttl_minutes: int = 60) -> str:
        """Return a read URL for *name* carrying a token that expires after *ttl_minutes*."""
        self._path(name)
        expire = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)
        to_encode = {"exp": expire, "sub": name, "aud": TOKEN_AUDIENCE}
        token = jwt.encode(to_encode, self._key(), algorithm=TOKEN_ALGORITHM)
        return f"{self.base_url}/{quote(name)}?token={token}"

    def verify(self, name: str, token: str) -> bool:
        """Check a token produced by signed_url() for *name*. Expired tokens fail."""
        try:
            payload = jwt.decode(
                token, self._key(), algorithms=[TOKEN_ALGORITHM], audience=TOKEN_AUDIENCE
            )
        except JWTError:
            return False
        return payload.get("sub") == name

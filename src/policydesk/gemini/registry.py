"""Single shared File Search Store, created once and remembered in the docstore."""

from __future__ import annotations

import asyncio
import logging

from policydesk.errors import ResponseParseError
from policydesk.gemini.service import RetrievalService
from policydesk.models import StoreRegistration
from policydesk.stores.docstore import DocStore

log = logging.getLogger(__name__)

REGISTRATION_KEY = "file-search-store"


class StoreRegistry:
    """Once-initialised cell holding the store handle.

    Lookup order: in-memory cache, docstore registration, then a new store
    from the retrieval service. The check-then-create sequence runs under a
    lock, so concurrent first callers share one store.
    """

    def __init__(self, docstore: DocStore, service: RetrievalService, display_name: str):
        self.docstore = docstore
        self.service = service
        self.display_name = display_name
        self._store_name: str | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> str | None:
        return self._store_name

    async def get_or_create(self) -> str:
        if self._store_name:
            return self._store_name

        async with self._lock:
            if self._store_name:
                return self._store_name

            reg = self.docstore.get_registration(REGISTRATION_KEY)
            if reg is not None:
                self._store_name = reg.store_name
                return self._store_name

            log.info("File Search Store not registered, creating '%s'", self.display_name)
            store_name = await self.service.create_store(self.display_name)
            if not store_name:
                raise ResponseParseError("Failed to create File Search Store - no name returned")

            reg = StoreRegistration(
                key=REGISTRATION_KEY,
                store_name=store_name,
                display_name=self.display_name,
            )
            if not self.docstore.add_registration(reg):
                # Another process registered first; its record wins.
                winner = self.docstore.get_registration(REGISTRATION_KEY)
                log.warning(
                    "Store already registered as %s; store %s is orphaned",
                    winner.store_name,
                    store_name,
                )
                store_name = winner.store_name

            self._store_name = store_name
            return self._store_name

    def reset(self) -> None:
        """Forget the cached handle; the next call re-reads the docstore."""
        self._store_name = None

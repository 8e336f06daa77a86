from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from journal.core.errors import StorageError
from journal.core.repositories.blob_storage import BlobStorage
from journal.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from supabase import Client


class SupabaseBlobStorage(BlobStorage):
    """Attachment payloads stored in a Supabase Storage bucket."""

    def __init__(self, client: Client, bucket: str) -> None:
        self._client: Client = client
        self._bucket = bucket

    async def fetch(self, object_name: str) -> bytes:
        if not object_name:
            raise StorageError("object name is empty")
        logger.debug("Downloading %s from bucket %s", object_name, self._bucket)
        try:
            return await asyncio.to_thread(
                lambda: self._client.storage.from_(self._bucket).download(object_name)
            )
        except Exception as err:
            raise StorageError(f"failed to download {object_name}: {err}") from err

from __future__ import annotations

from abc import ABC, abstractmethod


class BlobStorage(ABC):
    """Read access to attachment payloads in the object store."""

    @abstractmethod
    async def fetch(self, object_name: str) -> bytes:  # pragma: no cover - interface only
        """Return the object's bytes. Raises StorageError on failure."""

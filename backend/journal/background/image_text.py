from __future__ import annotations

from typing import TYPE_CHECKING

from journal.background.media import MediaEnrichmentTask
from journal.core.models.enrichable import EnrichableImage
from journal.core.services.model_client import is_supported_image_type

if TYPE_CHECKING:
    from collections.abc import Sequence


class ImageTextTask(MediaEnrichmentTask[EnrichableImage]):
    """Extract text from note images that have none yet."""

    family = "images"
    kind = "image"

    async def list_candidates(self) -> Sequence[EnrichableImage]:
        return await self._repository.list_images_missing_text()

    def is_supported(self, mime_type: str) -> bool:
        return is_supported_image_type(mime_type)

    async def call_model(self, data: bytes, mime_type: str) -> str:
        return await self._model.extract_text(data, mime_type)

    async def save(self, item: EnrichableImage, text: str) -> None:
        await self._repository.set_image_extracted_text(item.id, text)

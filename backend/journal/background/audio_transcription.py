from __future__ import annotations

from typing import TYPE_CHECKING

from journal.background.media import MediaEnrichmentTask
from journal.core.models.enrichable import EnrichableAudio
from journal.core.services.model_client import is_supported_audio_type

if TYPE_CHECKING:
    from collections.abc import Sequence


class AudioTranscriptionTask(MediaEnrichmentTask[EnrichableAudio]):
    """Transcribe note audio recordings that have no transcript yet."""

    family = "audio"
    kind = "audio"

    async def list_candidates(self) -> Sequence[EnrichableAudio]:
        return await self._repository.list_audio_missing_transcript()

    def is_supported(self, mime_type: str) -> bool:
        return is_supported_audio_type(mime_type)

    async def call_model(self, data: bytes, mime_type: str) -> str:
        return await self._model.transcribe_audio(data, mime_type)

    async def save(self, item: EnrichableAudio, text: str) -> None:
        await self._repository.set_audio_transcribed_text(item.id, text)

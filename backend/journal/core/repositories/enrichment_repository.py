from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from journal.core.models.enrichable import (
        EnrichableAudio,
        EnrichableImage,
        EnrichableNote,
        TagCatalog,
    )


class EnrichmentRepository(ABC):
    """Persistence contract used by the enrichment task families.

    Implementations perform database I/O and therefore expose async methods.
    Listing methods raise CandidateListingError on failure; write methods
    raise PersistenceError.
    """

    @abstractmethod
    async def list_users(self) -> Sequence[str]:  # pragma: no cover - interface only
        """Return the ids of every user, oldest first."""

    @abstractmethod
    async def list_tag_catalog(self, user_id: str) -> TagCatalog:  # pragma: no cover
        """Return the tag names the user has created."""

    @abstractmethod
    async def list_notes_below_tag_count(self, user_id: str, cap: int) -> Sequence[EnrichableNote]:  # pragma: no cover
        """Return the user's notes carrying fewer than ``cap`` tags, oldest first."""

    @abstractmethod
    async def add_tags_to_note(self, user_id: str, note_id: str, tag_names: Sequence[str]) -> None:  # pragma: no cover
        """Attach ``tag_names`` to the note, creating catalog entries as needed."""

    @abstractmethod
    async def list_images_missing_text(self) -> Sequence[EnrichableImage]:  # pragma: no cover
        """Return images whose extracted text is empty or absent."""

    @abstractmethod
    async def set_image_extracted_text(self, image_id: str, text: str) -> None:  # pragma: no cover
        """Store OCR text for an image."""

    @abstractmethod
    async def list_audio_missing_transcript(self) -> Sequence[EnrichableAudio]:  # pragma: no cover
        """Return audio recordings whose transcript is empty or absent."""

    @abstractmethod
    async def set_audio_transcribed_text(self, audio_id: str, text: str) -> None:  # pragma: no cover
        """Store a transcript for an audio recording."""

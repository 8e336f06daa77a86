from __future__ import annotations

from pydantic import Field, field_validator

from .base import AppBaseModel


class EnrichableNote(AppBaseModel):
    """A note as seen by the tag generation task."""

    id: str = Field(description="Note identifier")
    user_id: str = Field(description="Owner of the note")
    content: str = Field(default="", description="Free-text note content")
    tags: list[str] = Field(default_factory=list, description="Tag names attached to the note, as stored")

    @field_validator("content", mode="before")
    @classmethod
    def coerce_content(cls, v: str | None) -> str:
        return v or ""


class EnrichableImage(AppBaseModel):
    """An image attachment waiting for (or holding) OCR text."""

    id: str
    note_id: str
    object_name: str = Field(description="Blob storage object holding the image bytes")
    mime_type: str = ""
    extracted_text: str | None = None

    @property
    def needs_text(self) -> bool:
        return not (self.extracted_text or "").strip()


class EnrichableAudio(AppBaseModel):
    """An audio attachment waiting for (or holding) a transcript."""

    id: str
    note_id: str
    object_name: str = Field(description="Blob storage object holding the audio bytes")
    mime_type: str = ""
    transcribed_text: str | None = None

    @property
    def needs_transcript(self) -> bool:
        return not (self.transcribed_text or "").strip()


class TagCatalog(AppBaseModel):
    """Tag names a user has created before.

    - names: tag names as originally created, used for display and hints
    """

    user_id: str
    names: list[str] = Field(default_factory=list)

    @property
    def hints(self) -> list[str]:
        """Lowercased, de-duplicated names in catalog order."""
        return list(dict.fromkeys(n.lower() for n in self.names))

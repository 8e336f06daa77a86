from __future__ import annotations

from pydantic import Field

from journal.core.models.base import AppBaseModel, FrozenModel


class NoteEnrichmentResult(AppBaseModel):
    """Structured tag generation output as returned by the model."""

    tags: list[str] = Field(
        description="Suggested tags for the note, at most 3 are used",
    )

    model_config = {
        "extra": "ignore",
        "json_schema_extra": {
            "examples": [
                {
                    "tags": ["work", "meeting", "project"]
                }
            ]
        }
    }


class TagTaskResult(FrozenModel):
    """Counters produced by one tag generation pass."""

    users_processed: int = 0
    notes_processed: int = 0
    tags_added: int = 0
    errors: int = 0
    cancelled: bool = False


class MediaTaskResult(FrozenModel):
    """Counters produced by one OCR or transcription pass."""

    processed: int = 0
    errors: int = 0
    cancelled: bool = False


class PassResult(FrozenModel):
    """Aggregate of the three task families for one enrichment pass."""

    tags: TagTaskResult = Field(default_factory=TagTaskResult)
    images: MediaTaskResult = Field(default_factory=MediaTaskResult)
    audio: MediaTaskResult = Field(default_factory=MediaTaskResult)
    duration_seconds: float = 0.0

    @property
    def errors(self) -> int:
        return self.tags.errors + self.images.errors + self.audio.errors

    @property
    def cancelled(self) -> bool:
        return self.tags.cancelled or self.images.cancelled or self.audio.cancelled

    def summary(self) -> str:
        return (
            f"users={self.tags.users_processed} notes={self.tags.notes_processed} "
            f"tags={self.tags.tags_added} images={self.images.processed} "
            f"audio={self.audio.processed} errors={self.errors} "
            f"duration={self.duration_seconds:.1f}s"
        )

"""Shared pytest fixtures and in-memory collaborators."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence

import pytest

# Required settings must exist before anything builds Settings()
os.environ.setdefault("JOURNAL_SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("JOURNAL_SUPABASE_SERVICE_ROLE_KEY", "service-role-test-key")
os.environ.setdefault("JOURNAL_STORAGE_BUCKET", "journal-attachments")
os.environ.setdefault("JOURNAL_OPENAI_API_KEY", "sk-test-key")

from journal.core.errors import (  # noqa: E402
    CandidateListingError,
    EnrichmentValidationError,
    ModelError,
    PersistenceError,
    StorageError,
    UnsupportedMediaError,
)
from journal.core.models.enrichable import (  # noqa: E402
    EnrichableAudio,
    EnrichableImage,
    EnrichableNote,
    TagCatalog,
)
from journal.core.repositories.blob_storage import BlobStorage  # noqa: E402
from journal.core.repositories.enrichment_repository import EnrichmentRepository  # noqa: E402
from journal.core.services.model_client import (  # noqa: E402
    is_supported_audio_type,
    is_supported_image_type,
)


class FakeRepository(EnrichmentRepository):
    """EnrichmentRepository backed by dicts, recording every write."""

    def __init__(self) -> None:
        self.users: list[str] = []
        self.catalogs: dict[str, list[str]] = {}
        self.notes: dict[str, list[EnrichableNote]] = {}
        self.images: list[EnrichableImage] = []
        self.audio: list[EnrichableAudio] = []

        self.added_tags: list[tuple[str, str, list[str]]] = []
        self.saved_image_text: dict[str, str] = {}
        self.saved_transcripts: dict[str, str] = {}

        self.fail_listing: set[str] = set()
        self.fail_writes: set[str] = set()

    def add_note(self, user_id: str, note_id: str, content: str, tags: Sequence[str] = ()) -> EnrichableNote:
        if user_id not in self.users:
            self.users.append(user_id)
        note = EnrichableNote(id=note_id, user_id=user_id, content=content, tags=list(tags))
        self.notes.setdefault(user_id, []).append(note)
        return note

    def write_count(self) -> int:
        return len(self.added_tags) + len(self.saved_image_text) + len(self.saved_transcripts)

    def _check_listing(self, name: str) -> None:
        if name in self.fail_listing:
            raise CandidateListingError(f"failed to list {name}")

    def _check_write(self, item_id: str) -> None:
        if item_id in self.fail_writes:
            raise PersistenceError(f"failed to save {item_id}")

    async def list_users(self) -> Sequence[str]:
        self._check_listing("users")
        return list(self.users)

    async def list_tag_catalog(self, user_id: str) -> TagCatalog:
        self._check_listing(f"catalog:{user_id}")
        return TagCatalog(user_id=user_id, names=list(self.catalogs.get(user_id, [])))

    async def list_notes_below_tag_count(self, user_id: str, cap: int) -> Sequence[EnrichableNote]:
        self._check_listing(f"notes:{user_id}")
        return [n for n in self.notes.get(user_id, []) if len(n.tags) < cap]

    async def add_tags_to_note(self, user_id: str, note_id: str, tag_names: Sequence[str]) -> None:
        self._check_write(note_id)
        self.added_tags.append((user_id, note_id, list(tag_names)))

    async def list_images_missing_text(self) -> Sequence[EnrichableImage]:
        self._check_listing("images")
        return [i for i in self.images if i.needs_text]

    async def set_image_extracted_text(self, image_id: str, text: str) -> None:
        self._check_write(image_id)
        self.saved_image_text[image_id] = text

    async def list_audio_missing_transcript(self) -> Sequence[EnrichableAudio]:
        self._check_listing("audio")
        return [a for a in self.audio if a.needs_transcript]

    async def set_audio_transcribed_text(self, audio_id: str, text: str) -> None:
        self._check_write(audio_id)
        self.saved_transcripts[audio_id] = text


class FakeStorage(BlobStorage):
    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self.objects: dict[str, bytes] = dict(objects or {})
        self.fetched: list[str] = []

    async def fetch(self, object_name: str) -> bytes:
        self.fetched.append(object_name)
        if object_name not in self.objects:
            raise StorageError(f"object {object_name} not found")
        return self.objects[object_name]


class FakeModelClient:
    """ModelClient stand-in keyed by input text / payload bytes.

    Any key listed in ``failures`` raises ModelError. ``latency`` adds an
    awaitable pause to every call so cancellation can land mid-call.
    """

    def __init__(
        self,
        *,
        tags: dict[str, list[str]] | None = None,
        texts: dict[bytes, str] | None = None,
        failures: set[str | bytes] | None = None,
        latency: float = 0.0,
    ) -> None:
        self.tags = tags or {}
        self.texts = texts or {}
        self.failures = failures or set()
        self.latency = latency
        self.tag_calls: list[tuple[str, list[str]]] = []
        self.media_calls: list[tuple[bytes, str]] = []

    async def _pause(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    async def generate_tags(self, text: str, existing_tags: Sequence[str]) -> list[str]:
        self.tag_calls.append((text, list(existing_tags)))
        await self._pause()
        if text in self.failures:
            raise ModelError("model unavailable")
        return list(self.tags.get(text, []))

    async def extract_text(self, data: bytes, mime_type: str) -> str:
        if not data:
            raise EnrichmentValidationError("image data is empty")
        if not is_supported_image_type(mime_type):
            raise UnsupportedMediaError(mime_type, "image")
        self.media_calls.append((data, mime_type))
        await self._pause()
        if data in self.failures:
            raise ModelError("model unavailable")
        return self.texts.get(data, "")

    async def transcribe_audio(self, data: bytes, mime_type: str) -> str:
        if not data:
            raise EnrichmentValidationError("audio data is empty")
        if not is_supported_audio_type(mime_type):
            raise UnsupportedMediaError(mime_type, "audio")
        self.media_calls.append((data, mime_type))
        await self._pause()
        if data in self.failures:
            raise ModelError("model unavailable")
        return self.texts.get(data, "")


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def model() -> FakeModelClient:
    return FakeModelClient()


def make_image(image_id: str, *, mime_type: str = "image/png", text: str | None = None) -> EnrichableImage:
    return EnrichableImage(
        id=image_id,
        note_id=f"note-{image_id}",
        object_name=f"images/{image_id}",
        mime_type=mime_type,
        extracted_text=text,
    )


def make_audio(audio_id: str, *, mime_type: str = "audio/mpeg", text: str | None = None) -> EnrichableAudio:
    return EnrichableAudio(
        id=audio_id,
        note_id=f"note-{audio_id}",
        object_name=f"audio/{audio_id}",
        mime_type=mime_type,
        transcribed_text=text,
    )

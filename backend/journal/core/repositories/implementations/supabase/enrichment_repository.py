from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from journal.core.errors import CandidateListingError, PersistenceError
from journal.core.models.enrichable import (
    EnrichableAudio,
    EnrichableImage,
    EnrichableNote,
    TagCatalog,
)
from journal.core.repositories.enrichment_repository import EnrichmentRepository
from journal.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from supabase import Client


class SupabaseEnrichmentRepository(EnrichmentRepository):
    """Supabase implementation of the EnrichmentRepository.

    Reads and writes the journal tables through PostgREST with the service role
    client, so row level security does not hide other users' rows from the
    background job. Tag links live in the ``NoteTag`` join table.
    """

    USERS = "User"
    TAGS = "Tag"
    NOTES = "Note"
    NOTE_TAGS = "NoteTag"
    IMAGES = "NoteImage"
    AUDIO = "NoteAudio"

    PAGE_SIZE = 1000

    def __init__(self, client: Client) -> None:
        self._client: Client = client

    async def list_users(self) -> Sequence[str]:
        rows = await self._list(
            lambda: self._client.table(self.USERS).select("id").order("createdAt"),
            what="users",
        )
        return [str(r["id"]) for r in rows]

    async def list_tag_catalog(self, user_id: str) -> TagCatalog:
        rows = await self._list(
            lambda: self._client.table(self.TAGS).select("name").eq("userId", user_id).order("name"),
            what=f"tags for user {user_id}",
        )
        return TagCatalog(user_id=user_id, names=[r["name"] for r in rows if r.get("name")])

    async def list_notes_below_tag_count(self, user_id: str, cap: int) -> Sequence[EnrichableNote]:
        rows = await self._list(
            lambda: self._client.table(self.NOTES)
            .select("id, content, userId, NoteTag(Tag(name))")
            .eq("userId", user_id)
            .order("createdAt"),
            what=f"notes for user {user_id}",
        )
        notes = [self._row_to_note(r) for r in rows]
        return [n for n in notes if len(n.tags) < cap]

    async def add_tags_to_note(self, user_id: str, note_id: str, tag_names: Sequence[str]) -> None:
        if not tag_names:
            return

        def _tag_ids() -> dict[str, str]:
            resp = (
                self._client.table(self.TAGS)
                .select("id, name")
                .eq("userId", user_id)
                .execute()
            )
            # Catalog names keep their original case; match them case-insensitively
            by_name: dict[str, str] = {}
            for row in resp.data or []:
                by_name.setdefault(str(row["name"]).lower(), str(row["id"]))
            return by_name

        def _write() -> None:
            by_name = _tag_ids()
            now = datetime.now(UTC).isoformat()
            missing = [
                {"id": self._new_id(), "name": name, "userId": user_id, "createdAt": now}
                for name in tag_names
                if name.lower() not in by_name
            ]
            if missing:
                (
                    self._client.table(self.TAGS)
                    .upsert(missing, on_conflict="userId,name", ignore_duplicates=True)
                    .execute()
                )
                by_name = _tag_ids()

            links = [
                {"noteId": note_id, "tagId": by_name[name.lower()]}
                for name in tag_names
                if name.lower() in by_name
            ]
            (
                self._client.table(self.NOTE_TAGS)
                .upsert(links, on_conflict="noteId,tagId", ignore_duplicates=True)
                .execute()
            )

        await self._write(_write, what=f"tags on note {note_id}")

    async def list_images_missing_text(self) -> Sequence[EnrichableImage]:
        rows = await self._list(
            lambda: self._client.table(self.IMAGES)
            .select("id, noteId, objectName, mimeType, extractedText")
            .or_("extractedText.is.null,extractedText.eq.")
            .order("createdAt"),
            what="images missing text",
        )
        images = [
            EnrichableImage(
                id=str(r["id"]),
                note_id=str(r["noteId"]),
                object_name=r.get("objectName") or "",
                mime_type=r.get("mimeType") or "",
                extracted_text=r.get("extractedText"),
            )
            for r in rows
        ]
        return [i for i in images if i.needs_text]

    async def set_image_extracted_text(self, image_id: str, text: str) -> None:
        await self._write(
            lambda: self._client.table(self.IMAGES)
            .update({"extractedText": text})
            .eq("id", image_id)
            .execute(),
            what=f"extracted text for image {image_id}",
        )

    async def list_audio_missing_transcript(self) -> Sequence[EnrichableAudio]:
        rows = await self._list(
            lambda: self._client.table(self.AUDIO)
            .select("id, noteId, objectName, mimeType, transcribedText")
            .or_("transcribedText.is.null,transcribedText.eq.")
            .order("createdAt"),
            what="audio missing transcripts",
        )
        recordings = [
            EnrichableAudio(
                id=str(r["id"]),
                note_id=str(r["noteId"]),
                object_name=r.get("objectName") or "",
                mime_type=r.get("mimeType") or "",
                transcribed_text=r.get("transcribedText"),
            )
            for r in rows
        ]
        return [a for a in recordings if a.needs_transcript]

    async def set_audio_transcribed_text(self, audio_id: str, text: str) -> None:
        await self._write(
            lambda: self._client.table(self.AUDIO)
            .update({"transcribedText": text})
            .eq("id", audio_id)
            .execute(),
            what=f"transcript for audio {audio_id}",
        )

    async def _list(self, build_query: Callable[[], Any], *, what: str) -> list[dict[str, Any]]:
        """Fetch every page of a query, wrapping failures in CandidateListingError."""
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            def _fetch_page(start: int, size: int) -> Any:
                return build_query().range(start, start + size - 1).execute()

            try:
                resp = await asyncio.to_thread(_fetch_page, offset, self.PAGE_SIZE)
            except Exception as err:
                raise CandidateListingError(f"failed to list {what}: {err}") from err

            page: list[dict[str, Any]] = resp.data or []
            rows.extend(page)
            if len(page) < self.PAGE_SIZE:
                return rows
            offset += self.PAGE_SIZE

    @staticmethod
    async def _write(func: Callable[[], Any], *, what: str) -> None:
        try:
            await asyncio.to_thread(func)
        except Exception as err:
            raise PersistenceError(f"failed to save {what}: {err}") from err

    @staticmethod
    def _new_id() -> str:
        # CUID-shaped so ids look like the ones the CRUD layer creates
        return "c" + uuid.uuid4().hex[:24]

    @staticmethod
    def _row_to_note(row: dict[str, Any]) -> EnrichableNote:
        tags: list[str] = []
        for link in row.get("NoteTag") or []:
            tag = (link or {}).get("Tag") or {}
            name = tag.get("name")
            if isinstance(name, str) and name and name not in tags:
                tags.append(name)
        return EnrichableNote(
            id=str(row["id"]),
            user_id=str(row.get("userId") or ""),
            content=row.get("content"),
            tags=tags,
        )

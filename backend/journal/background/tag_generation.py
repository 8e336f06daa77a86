from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from journal.core.errors import (
    CandidateListingError,
    EnrichmentCancelled,
    EnrichmentError,
)
from journal.core.schemas.enrichment import TagTaskResult
from journal.core.services.sanitizer import RegexContentSanitizer
from journal.core.services.tag_selection import (
    MAX_NOTE_TAGS,
    remaining_tag_slots,
    select_tags,
)
from journal.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from journal.core.cancellation import CancelToken
    from journal.core.models.enrichable import EnrichableNote, TagCatalog
    from journal.core.repositories.enrichment_repository import EnrichmentRepository
    from journal.core.services.model_client import ModelClient
    from journal.core.services.rate_limiter import RateLimiter
    from journal.core.services.sanitizer import ContentSanitizer


class TagGenerationTask:
    """Suggest tags for every user's under-tagged notes.

    Users are processed one after another and each user's notes in creation
    order. A failure on one note (or one user's listing) is counted and
    skipped; only cancellation stops the loop early.
    """

    family = "tags"

    def __init__(
        self,
        repository: EnrichmentRepository,
        model: ModelClient,
        *,
        sanitizer: ContentSanitizer | None = None,
        dry_run: bool = False,
    ) -> None:
        self._repository = repository
        self._model = model
        self._sanitizer = sanitizer or RegexContentSanitizer()
        self._dry_run = dry_run

    async def run(self, limiter: RateLimiter, token: CancelToken) -> TagTaskResult:
        tally: Counter[str] = Counter()

        try:
            users = await token.run(self._repository.list_users())
        except CandidateListingError as err:
            logger.error("Tag generation could not list users: %s", err)
            return TagTaskResult(errors=1)
        except EnrichmentCancelled:
            return TagTaskResult(cancelled=True)

        logger.info("Found %d users to process", len(users))

        try:
            for user_id in users:
                token.raise_if_cancelled()
                try:
                    await self._run_for_user(user_id, limiter, token, tally)
                except CandidateListingError as err:
                    logger.error("Failed to generate tags for user %s: %s", user_id, err)
                    tally["errors"] += 1
                    continue
                tally["users_processed"] += 1
        except EnrichmentCancelled:
            logger.info("Tag generation cancelled after %d notes", tally["notes_processed"])
            return TagTaskResult(**tally, cancelled=True)

        return TagTaskResult(**tally)

    async def _run_for_user(
        self,
        user_id: str,
        limiter: RateLimiter,
        token: CancelToken,
        tally: Counter[str],
    ) -> None:
        catalog = await token.run(self._repository.list_tag_catalog(user_id))
        notes = await token.run(self._repository.list_notes_below_tag_count(user_id, MAX_NOTE_TAGS))

        logger.info("Found %d notes with fewer than %d tags for user %s", len(notes), MAX_NOTE_TAGS, user_id)

        for note in notes:
            token.raise_if_cancelled()
            tally["notes_processed"] += 1
            try:
                added = await self._tag_note(note, catalog, limiter, token)
            except EnrichmentError as err:
                logger.error("Failed to generate tags for note %s: %s", note.id, err)
                tally["errors"] += 1
                continue
            tally["tags_added"] += added

    async def _tag_note(
        self,
        note: EnrichableNote,
        catalog: TagCatalog,
        limiter: RateLimiter,
        token: CancelToken,
    ) -> int:
        max_new = remaining_tag_slots(len(note.tags))
        if max_new <= 0:
            return 0
        if not note.content.strip():
            logger.debug("Skipping note %s with empty content", note.id)
            return 0

        logger.info("Processing note %s (current tags: %d)", note.id, len(note.tags))

        await limiter.acquire(token)
        text = self._sanitizer.sanitize(note.content)
        candidates = await token.run(self._model.generate_tags(text, catalog.hints))

        new_tags = select_tags(candidates, catalog.names, note.tags, max_new)
        if not new_tags:
            logger.info("No new tags to add for note %s", note.id)
            return 0

        if self._dry_run:
            logger.info("[dry-run] Would add %d tags to note %s: %s", len(new_tags), note.id, new_tags)
            return len(new_tags)

        await token.run(self._repository.add_tags_to_note(catalog.user_id, note.id, new_tags))
        logger.info("Added %d tags to note %s: %s", len(new_tags), note.id, new_tags)
        return len(new_tags)

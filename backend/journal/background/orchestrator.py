from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from journal.background.audio_transcription import AudioTranscriptionTask
from journal.background.image_text import ImageTextTask
from journal.background.tag_generation import TagGenerationTask
from journal.core.cancellation import CancelToken
from journal.core.errors import EnrichmentCancelled
from journal.core.schemas.enrichment import MediaTaskResult, PassResult, TagTaskResult
from journal.core.services.rate_limiter import RateLimiter
from journal.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from journal.core.repositories.blob_storage import BlobStorage
    from journal.core.repositories.enrichment_repository import EnrichmentRepository
    from journal.core.services.model_client import ModelClient
    from journal.core.services.sanitizer import ContentSanitizer


class EnrichmentFamily(Protocol):
    family: str

    async def run(self, limiter: RateLimiter, token: CancelToken) -> TagTaskResult | MediaTaskResult: ...


class EnrichmentOrchestrator:
    """Run the tag, image and audio families side by side.

    Every pass gets a fresh rate limiter shared by all three families, so the
    configured delay bounds the total rate of model calls. Families report
    immutable results which are combined once, under a lock, when all of them
    have finished.
    """

    def __init__(
        self,
        repository: EnrichmentRepository,
        storage: BlobStorage,
        model: ModelClient,
        *,
        delay: float = 2.0,
        dry_run: bool = False,
        sanitizer: ContentSanitizer | None = None,
    ) -> None:
        self._delay = delay
        self._tag_task = TagGenerationTask(repository, model, sanitizer=sanitizer, dry_run=dry_run)
        self._image_task = ImageTextTask(repository, storage, model, dry_run=dry_run)
        self._audio_task = AudioTranscriptionTask(repository, storage, model, dry_run=dry_run)
        self._lock = asyncio.Lock()
        self._last_result: PassResult | None = None

    @property
    def last_result(self) -> PassResult | None:
        return self._last_result

    async def run_once(self, token: CancelToken | None = None) -> PassResult:
        """Run a single pass and return its aggregate counters."""
        token = token or CancelToken()
        limiter = RateLimiter(self._delay)
        start = time.monotonic()

        tags, images, audio = await asyncio.gather(
            self._run_family(self._tag_task, limiter, token, TagTaskResult),
            self._run_family(self._image_task, limiter, token, MediaTaskResult),
            self._run_family(self._audio_task, limiter, token, MediaTaskResult),
        )

        async with self._lock:
            result = PassResult(
                tags=tags,
                images=images,
                audio=audio,
                duration_seconds=time.monotonic() - start,
            )
            self._last_result = result
        return result

    async def run_forever(self, interval: float, token: CancelToken) -> PassResult:
        """Run a pass now and then once per ``interval`` until cancelled.

        Returns the most recent pass result, which is partial if the last pass
        was interrupted.
        """
        next_at = time.monotonic() + interval
        await self._perform_pass(token)

        while not token.cancelled:
            try:
                await token.sleep(max(0.0, next_at - time.monotonic()))
            except EnrichmentCancelled:
                break
            next_at = time.monotonic() + interval
            await self._perform_pass(token)

        logger.info("Shutting down enrichment job")
        return self._last_result or PassResult()

    async def _perform_pass(self, token: CancelToken) -> PassResult | None:
        logger.info("Starting enrichment pass at %s", datetime.now(UTC).isoformat())
        try:
            result = await self.run_once(token)
        except Exception as err:
            logger.error("Enrichment pass failed: %s", err)
            return None
        log_pass_result(result)
        return result

    @staticmethod
    async def _run_family(
        task: EnrichmentFamily,
        limiter: RateLimiter,
        token: CancelToken,
        fallback: type[TagTaskResult] | type[MediaTaskResult],
    ) -> TagTaskResult | MediaTaskResult:
        # One family blowing up must not take the other two down with it
        try:
            return await task.run(limiter, token)
        except Exception:
            logger.exception("Unexpected failure in %s enrichment", task.family)
            return fallback(errors=1)


def log_pass_result(result: PassResult) -> None:
    state = "cancelled" if result.cancelled else "completed"
    logger.info("Enrichment pass %s in %.1fs", state, result.duration_seconds)
    logger.info("  Users processed: %d", result.tags.users_processed)
    logger.info("  Notes processed: %d", result.tags.notes_processed)
    logger.info("  Tags added: %d", result.tags.tags_added)
    logger.info("  Images processed: %d (errors: %d)", result.images.processed, result.images.errors)
    logger.info("  Audio processed: %d (errors: %d)", result.audio.processed, result.audio.errors)
    logger.info("  Errors: %d", result.errors)
    logger.debug("Pass summary: %s", result.summary())

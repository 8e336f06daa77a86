from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from typing import TYPE_CHECKING, Generic, TypeVar

from journal.core.errors import (
    CandidateListingError,
    EnrichmentCancelled,
    EnrichmentError,
    EnrichmentValidationError,
    UnsupportedMediaError,
)
from journal.core.models.enrichable import EnrichableAudio, EnrichableImage
from journal.core.schemas.enrichment import MediaTaskResult
from journal.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from journal.core.cancellation import CancelToken
    from journal.core.repositories.blob_storage import BlobStorage
    from journal.core.repositories.enrichment_repository import EnrichmentRepository
    from journal.core.services.model_client import ModelClient
    from journal.core.services.rate_limiter import RateLimiter

ItemT = TypeVar("ItemT", EnrichableImage, EnrichableAudio)


class MediaEnrichmentTask(ABC, Generic[ItemT]):
    """Shared loop for attachments that turn into text (OCR, transcripts).

    For each candidate: check cancellation, reject unsupported types locally,
    download the payload, take a rate limit permit, call the model and store
    the text. Any per-item failure is counted and the loop moves on.
    """

    family: str
    kind: str

    def __init__(
        self,
        repository: EnrichmentRepository,
        storage: BlobStorage,
        model: ModelClient,
        *,
        dry_run: bool = False,
    ) -> None:
        self._repository = repository
        self._storage = storage
        self._model = model
        self._dry_run = dry_run

    @abstractmethod
    async def list_candidates(self) -> Sequence[ItemT]: ...

    @abstractmethod
    def is_supported(self, mime_type: str) -> bool: ...

    @abstractmethod
    async def call_model(self, data: bytes, mime_type: str) -> str: ...

    @abstractmethod
    async def save(self, item: ItemT, text: str) -> None: ...

    async def run(self, limiter: RateLimiter, token: CancelToken) -> MediaTaskResult:
        try:
            items = await token.run(self.list_candidates())
        except CandidateListingError as err:
            logger.error("Failed to list %s candidates: %s", self.kind, err)
            return MediaTaskResult(errors=1)
        except EnrichmentCancelled:
            return MediaTaskResult(cancelled=True)

        logger.info("Found %d %s items to process", len(items), self.kind)

        tally: Counter[str] = Counter()
        try:
            for item in items:
                token.raise_if_cancelled()
                tally["processed"] += 1
                try:
                    await self._enrich(item, limiter, token)
                except EnrichmentError as err:
                    logger.error("Failed to process %s %s: %s", self.kind, item.id, err)
                    tally["errors"] += 1
        except EnrichmentCancelled:
            logger.info("%s enrichment cancelled after %d items", self.kind.capitalize(), tally["processed"])
            return MediaTaskResult(**tally, cancelled=True)

        return MediaTaskResult(**tally)

    async def _enrich(self, item: ItemT, limiter: RateLimiter, token: CancelToken) -> None:
        if not self.is_supported(item.mime_type):
            raise UnsupportedMediaError(item.mime_type, self.kind)

        data = await token.run(self._storage.fetch(item.object_name))
        if not data:
            raise EnrichmentValidationError(f"{self.kind} data is empty")

        await limiter.acquire(token)
        text = await token.run(self.call_model(data, item.mime_type))
        if not text:
            logger.info("No text found in %s %s", self.kind, item.id)
            return

        if self._dry_run:
            logger.info("[dry-run] Would save %d characters for %s %s", len(text), self.kind, item.id)
            return

        await token.run(self.save(item, text))
        logger.info("Saved %d characters for %s %s", len(text), self.kind, item.id)

from __future__ import annotations

from typing import TYPE_CHECKING

from journal.background.orchestrator import EnrichmentOrchestrator
from journal.core.repositories.implementations.supabase.blob_storage import SupabaseBlobStorage
from journal.core.repositories.implementations.supabase.enrichment_repository import (
    SupabaseEnrichmentRepository,
)
from journal.core.services.model_client import OpenAIModelClient
from journal.core.services.sanitizer import RegexContentSanitizer
from journal.db.base import check_connection, create_supabase_admin_client
from journal.utils.logging import get_logger
from journal.utils.openai_client import create_openai_client

if TYPE_CHECKING:
    from journal.config import Settings

logger = get_logger(__name__)


def get_model_client(settings: Settings) -> OpenAIModelClient:
    """Construct the OpenAI-backed model client from settings."""
    return OpenAIModelClient(
        create_openai_client(settings),
        tag_model=settings.tag_model,
        ocr_model=settings.ocr_model,
        transcription_model=settings.transcription_model,
    )


def build_orchestrator(settings: Settings, *, delay: float, dry_run: bool) -> EnrichmentOrchestrator:
    """Wire the Supabase collaborators and the model client into an orchestrator."""
    client = create_supabase_admin_client(settings)
    check_connection(client)
    logger.info("Connected to Supabase at %s", settings.supabase_url)
    return EnrichmentOrchestrator(
        SupabaseEnrichmentRepository(client),
        SupabaseBlobStorage(client, settings.storage_bucket),
        get_model_client(settings),
        delay=delay,
        dry_run=dry_run,
        sanitizer=RegexContentSanitizer(),
    )

from __future__ import annotations

from typing import TYPE_CHECKING

from openai import AsyncOpenAI

from journal.utils.logging import get_logger

if TYPE_CHECKING:
    from journal.config import Settings


def create_openai_client(settings: Settings) -> AsyncOpenAI:
    """Build the OpenAI client used by the enrichment job.

    Constructed once by the entry point and passed down, so tests can swap in
    fakes without patching module state.
    """
    logger = get_logger(__name__)
    logger.debug("Initializing OpenAI client (timeout %.0fs)", settings.openai_timeout)
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.openai_timeout,
        max_retries=0,
    )

"""Error taxonomy for the enrichment pipeline.

Everything except ``ConfigurationError`` and ``EnrichmentCancelled`` is
recovered at the item (or family) level and surfaces only as an error count.
"""

from __future__ import annotations


class EnrichmentError(Exception):
    """Base class for enrichment failures."""


class ConfigurationError(EnrichmentError):
    """Missing or invalid credentials/connection settings. Fatal at startup."""


class CandidateListingError(EnrichmentError):
    """A persistence query for candidate items failed."""


class EnrichmentValidationError(EnrichmentError):
    """An item cannot be sent to the model (empty payload, bad input)."""


class UnsupportedMediaError(EnrichmentValidationError):
    """The declared MIME type is not on the allow-list for the operation."""

    def __init__(self, mime_type: str, kind: str) -> None:
        super().__init__(f"unsupported {kind} MIME type: {mime_type}")
        self.mime_type = mime_type
        self.kind = kind


class ModelError(EnrichmentError):
    """The model provider call failed or returned nothing usable."""


class PersistenceError(EnrichmentError):
    """Writing an enrichment result back to the database failed."""


class StorageError(EnrichmentError):
    """Fetching a blob payload failed."""


class EnrichmentCancelled(Exception):
    """The run was cancelled. Not counted as an error."""

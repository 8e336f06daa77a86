from .audio_transcription import AudioTranscriptionTask
from .image_text import ImageTextTask
from .orchestrator import EnrichmentOrchestrator
from .tag_generation import TagGenerationTask

__all__ = [
    "AudioTranscriptionTask",
    "EnrichmentOrchestrator",
    "ImageTextTask",
    "TagGenerationTask",
]

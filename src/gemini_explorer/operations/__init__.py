"""Generative operations: the calls each console command makes into the Gemini API."""

from .results import ImageResult, OperationResult, Source, SourcedResult, TextResult, VideoResult
from .service import GeminiService, GenerativeService

__all__ = [
    "GeminiService",
    "GenerativeService",
    "ImageResult",
    "OperationResult",
    "Source",
    "SourcedResult",
    "TextResult",
    "VideoResult",
]

"""
Image generation: provider contract, the Gemini provider and failure classification.
"""
from .base import ImageGenerationError, ImageGenerationProvider, ImageGenerationRequest, ImageGenerationResponse
from .factory import ImageProviderFactory
from .failure_types import FailureType, classify_failure, is_retry_allowed

__all__ = [
    "FailureType",
    "ImageGenerationError",
    "ImageGenerationProvider",
    "ImageGenerationRequest",
    "ImageGenerationResponse",
    "ImageProviderFactory",
    "classify_failure",
    "is_retry_allowed",
]

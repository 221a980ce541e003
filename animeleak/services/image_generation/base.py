"""
Provider contract for the generative step: one photo plus the fixed
instruction in, one image out.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class ImageGenerationRequest:
    instruction: str
    input_bytes: bytes
    input_mime_type: str = "image/jpeg"
    model: str | None = None  # None = provider's configured model


@dataclass
class ImageGenerationResponse:
    image_content: bytes
    mime_type: str
    model: str
    provider: str
    raw_response_sanitized: dict[str, Any] | None = None  # for logs only, never stored


class ImageGenerationError(Exception):
    """
    The provider rejected or could not serve the request.
    `detail` carries provider fields for logging and classification
    (http_status, block_reason, finish_reason).
    """

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}

    @property
    def http_status(self) -> int | None:
        return self.detail.get("http_status")


class ImageGenerationProvider(ABC):
    def __init__(self, config: dict) -> None:
        self.config = config

    @abstractmethod
    def is_available(self) -> bool:
        """True when credentials are present."""

    @abstractmethod
    def generate(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        """
        Transform the input image. Raises ConfigurationError when credentials are
        missing and ImageGenerationError for everything the service rejects.
        """

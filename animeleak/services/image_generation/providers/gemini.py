"""
Gemini image provider (Google AI generateContent, image in -> image out).

A 200 OK without image data is never a silent success: blocked prompts,
empty candidate lists and text-only answers all raise ImageGenerationError.
"""
import base64
import logging
from typing import Any

import httpx

from animeleak.services.errors import ConfigurationError
from animeleak.services.image_generation.base import (
    ImageGenerationError,
    ImageGenerationProvider,
    ImageGenerationRequest,
    ImageGenerationResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com"
DEFAULT_MODEL = "gemini-2.5-flash-image-preview"
DEFAULT_OUTPUT_MIME = "image/png"
REDACTED = "[REDACTED]"


def error_detail(result: dict[str, Any] | None) -> dict[str, Any]:
    """block_reason / finish_reason / finish_message from a Gemini body, when present."""
    result = result or {}
    detail: dict[str, Any] = {}
    block_reason = (result.get("promptFeedback") or {}).get("blockReason")
    if block_reason:
        detail["block_reason"] = block_reason
    first = (result.get("candidates") or [{}])[0]
    for src, dst in (("finishReason", "finish_reason"), ("finishMessage", "finish_message")):
        if src in first:
            detail[dst] = first[src]
    return detail


def redact_inline_data(value: Any) -> Any:
    """Copy of a Gemini body with every inlineData payload replaced, for logs."""
    if isinstance(value, list):
        return [redact_inline_data(v) for v in value]
    if not isinstance(value, dict):
        return value
    if "data" in value and ("mimeType" in value or "mime_type" in value):
        return {**value, "data": REDACTED}
    return {k: redact_inline_data(v) for k, v in value.items()}


def _first_inline_image(result: dict[str, Any]) -> tuple[str | None, str | None]:
    candidate = (result.get("candidates") or [{}])[0]
    for part in (candidate.get("content") or {}).get("parts") or []:
        inline = part.get("inlineData") or part.get("inline_data") or {}
        if isinstance(inline.get("data"), str):
            return inline["data"], inline.get("mimeType") or inline.get("mime_type")
    return None, None


class GeminiImageProvider(ImageGenerationProvider):
    def __init__(self, config: dict) -> None:
        super().__init__(config)
        self.api_key = (config.get("api_key") or "").strip()
        endpoint = (config.get("api_endpoint") or DEFAULT_ENDPOINT).rstrip("/")
        self.base_url = f"{endpoint}/v1beta/models"
        self.timeout = float(config.get("timeout") or 180.0)
        self.model_name = (config.get("model") or DEFAULT_MODEL).strip()

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _payload(self, request: ImageGenerationRequest) -> dict[str, Any]:
        encoded = base64.standard_b64encode(request.input_bytes).decode("ascii")
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": request.instruction},
                        {"inlineData": {"mimeType": request.input_mime_type, "data": encoded}},
                    ],
                }
            ],
        }

    def _post(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(
                    f"{self.base_url}/{model}:generateContent",
                    params={"key": self.api_key},
                    json=payload,
                )
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as e:
            try:
                body = e.response.json()
            except ValueError:
                body = {}
            message = (body.get("error") or {}).get("message") if isinstance(body, dict) else None
            detail = {**error_detail(body if isinstance(body, dict) else {}), "http_status": e.response.status_code}
            raise ImageGenerationError(message or str(e), detail=detail) from e
        except httpx.HTTPError as e:
            raise ImageGenerationError(str(e) or type(e).__name__) from e

    def generate(self, request: ImageGenerationRequest) -> ImageGenerationResponse:
        if not self.is_available():
            raise ConfigurationError("API key not configured")

        model = (request.model or "").strip() or self.model_name
        result = self._post(model, self._payload(request))

        detail = error_detail(result)
        if detail.get("block_reason"):
            raise ImageGenerationError(f"Request blocked: {detail['block_reason']}", detail=detail)
        if not result.get("candidates"):
            raise ImageGenerationError("Gemini returned no candidates", detail=detail)

        image_b64, mime_type = _first_inline_image(result)
        if not image_b64:
            logger.warning(
                "gemini_no_image_data",
                extra={"provider": "gemini", "error": detail.get("finish_reason"), "response": redact_inline_data(result)},
            )
            raise ImageGenerationError("Gemini response did not include image data", detail=detail)

        return ImageGenerationResponse(
            image_content=base64.standard_b64decode(image_b64),
            mime_type=mime_type or DEFAULT_OUTPUT_MIME,
            model=model,
            provider="gemini",
            raw_response_sanitized=redact_inline_data(result),
        )

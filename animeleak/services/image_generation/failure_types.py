"""
Failure classification for the background generation step.
Decides whether a failure may be auto-retried once or needs an operator.
"""
from enum import Enum

from animeleak.services.errors import ConfigurationError, NotFound, TransientGenerationError
from animeleak.services.image_generation.base import ImageGenerationError


class FailureType(str, Enum):
    CONFIGURATION = "configuration"  # credentials / required metadata missing: no auto-retry
    TRANSIENT = "transient"  # network, 429/5xx, empty output: one auto-retry


# Messages the pipeline itself produces for configuration-class problems.
CONFIGURATION_MARKERS = (
    "api key",
    "not configured",
    "missing storage metadata",
)

# Provider rejections that retrying with the same credentials cannot fix.
CONFIGURATION_HTTP_STATUSES = frozenset({401, 403})


def classify_failure(exc: BaseException) -> FailureType:
    # A vanished original is a data-integrity failure; retrying reads the same missing blob.
    if isinstance(exc, (ConfigurationError, NotFound)):
        return FailureType.CONFIGURATION
    if isinstance(exc, TransientGenerationError):
        return FailureType.TRANSIENT
    if isinstance(exc, ImageGenerationError):
        if exc.http_status in CONFIGURATION_HTTP_STATUSES:
            return FailureType.CONFIGURATION
    message = str(exc).lower()
    if any(marker in message for marker in CONFIGURATION_MARKERS):
        return FailureType.CONFIGURATION
    return FailureType.TRANSIENT


def is_retry_allowed(exc: BaseException) -> bool:
    return classify_failure(exc) is FailureType.TRANSIENT

import unittest

from animeleak.services.errors import ConfigurationError, NotFound, TransientGenerationError
from animeleak.services.image_generation import FailureType, ImageGenerationError, classify_failure, is_retry_allowed


class TestClassifyFailure(unittest.TestCase):
    def test_configuration_errors(self):
        for exc in (
            ConfigurationError("anything"),
            RuntimeError("API key not configured"),
            ValueError("Missing storage metadata for handle"),
            NotFound("Original image no longer available"),
            ImageGenerationError("Unauthorized", detail={"http_status": 401}),
        ):
            with self.subTest(exc=exc):
                self.assertIs(classify_failure(exc), FailureType.CONFIGURATION)
                self.assertFalse(is_retry_allowed(exc))

    def test_transient_errors(self):
        for exc in (
            TransientGenerationError("empty output"),
            ImageGenerationError("Too many requests", detail={"http_status": 429}),
            ImageGenerationError("Gemini returned no candidates"),
            TimeoutError("read timed out"),
            ConnectionError(),
        ):
            with self.subTest(exc=exc):
                self.assertIs(classify_failure(exc), FailureType.TRANSIENT)
                self.assertTrue(is_retry_allowed(exc))

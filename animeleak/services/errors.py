"""
Domain errors for the credit-gated transformation pipeline.

ValidationError / InsufficientCredits are raised synchronously to the caller of
submit. ConfigurationError / TransientGenerationError only ever live inside the
background step, where they are caught and written to the original's
generation_error. NotFound is turned into an empty result on public endpoints.
"""


class TransformationError(Exception):
    """Base class for errors the API layer knows how to map."""


class ValidationError(TransformationError):
    """Bad asset (type, size, missing metadata). Terminal, no credit touched."""


class InsufficientCredits(TransformationError):
    def __init__(self, message: str = "Insufficient credits", credits: int = 0):
        super().__init__(message)
        self.credits = credits


class ConfigurationError(TransformationError):
    """Missing credentials or required metadata. No auto-retry."""


class TransientGenerationError(TransformationError):
    """Network / provider failure. Eligible for one auto-retry."""


class NotFound(TransformationError):
    pass


class NotAuthorized(TransformationError):
    pass

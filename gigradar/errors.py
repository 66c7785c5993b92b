"""Exception hierarchy for the acquisition and scoring pipeline.

Transport and service failures are per-item and retryable on a later run.
A dimension mismatch is fatal for the single call that produced it.
A duplicate key on insert means "already known" and is never fatal.
Missing extraction data is not an error at all; it is represented as
``None`` or an empty collection.
"""
from __future__ import annotations


class GigRadarError(Exception):
    """Base class for all pipeline errors."""


class TransportError(GigRadarError):
    """Network failure or timeout talking to an external service."""


class RateLimitedError(TransportError):
    """The service asked us to slow down (HTTP 429) or is warming up (503)."""


class ServiceError(GigRadarError):
    """An external service answered but reported a non-ok status."""


class BypassServiceError(ServiceError):
    pass


class EmbeddingServiceError(ServiceError):
    pass


class DimensionMismatchError(GigRadarError):
    """Vector length does not match the expected or the compared length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"vector length mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class DuplicatePostingError(GigRadarError):
    """A row with the same key already exists."""

    def __init__(self, key: str | int) -> None:
        super().__init__(f"already stored: {key}")
        self.key = key


class ConfigurationError(GigRadarError):
    """A required setting or secret is missing or invalid."""


class ProfileError(ConfigurationError):
    """The user profile failed validation."""

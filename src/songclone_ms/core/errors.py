"""
Error Codes and Exceptions for songclone-ms.

Taxonomy:
    - ConfigurationError: A required credential is missing. Raised before
      any network activity.
    - ValidationError: Missing required field, undersized training audio,
      malformed base64. Raised before any network activity.
    - ProviderError: Bad status or malformed payload from a provider.
    - PollTimeoutError: A poll bound was exhausted. Handled like
      ProviderError wherever a fallback exists.

Voice cloning never surfaces ProviderError or PollTimeoutError to callers:
the orchestrator catches them and advances to the next tier. Other
operations (songs, stems, transcription) have no fallback and let them
propagate to the API layer, which maps them to HTTP status codes.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """
    Standardized error codes for API responses.

    These codes are used in ServiceError exceptions and returned in API
    error responses for consistent client handling.
    """
    CONFIGURATION_MISSING = "CONFIGURATION_MISSING"   # Credential not configured
    INVALID_INPUT = "INVALID_INPUT"                   # Bad request data
    PROVIDER_FAILED = "PROVIDER_FAILED"               # Provider rejected or broke
    TIMEOUT = "TIMEOUT"                               # Poll bound exhausted
    INTERNAL_ERROR = "INTERNAL_ERROR"                 # Unexpected error


class ServiceError(Exception):
    """
    Base exception for songclone-ms errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode class (or a more specific code).
        details: Optional dictionary with additional context.
    """
    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to standardized error response dict for API."""
        result = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ConfigurationError(ServiceError):
    """Raised when a provider credential is missing."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.CONFIGURATION_MISSING, details)


class ValidationError(ServiceError):
    """
    Raised when input validation fails.

    The code is field specific (e.g. "SONG_URL_REQUIRED", "AUDIO_TOO_SHORT")
    so clients can react programmatically.

    Example:
        >>> raise ValidationError("songUrl required", "SONG_URL_REQUIRED")
    """
    def __init__(self, message: str, code: str = ErrorCode.INVALID_INPUT, details: Optional[Dict] = None):
        super().__init__(message, code, details)


class ProviderError(ServiceError):
    """Raised when a provider returns a bad status or malformed payload."""
    def __init__(self, message: str, details: Optional[Dict] = None, code: str = ErrorCode.PROVIDER_FAILED):
        super().__init__(message, code, details)


class PollTimeoutError(ProviderError):
    """Raised when a poll bound (attempts or wall-clock) is exhausted."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, details, code=ErrorCode.TIMEOUT)

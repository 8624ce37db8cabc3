"""Centralized exception hierarchy for the smart-extract package.

All domain-specific exceptions inherit from ``SmartExtractError`` so
callers can catch the entire family with a single ``except`` clause.
Expected extraction failures (HTTP errors, empty pages, missing caption
tracks) are reported as data, not raised; only LLM failures cross the
orchestrator boundary as exceptions.
"""

from __future__ import annotations


class SmartExtractError(Exception):
    """Base exception for all smart-extract errors."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(SmartExtractError):
    """Raised when required settings are missing or inconsistent."""


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------


class ExtractionError(SmartExtractError):
    """Raised inside a strategy for a soft failure; never escapes the cascade."""


# ---------------------------------------------------------------------------
# LLM errors
# ---------------------------------------------------------------------------


class LLMError(SmartExtractError):
    """Base exception for classified LLM provider failures.

    Attributes:
        message: User-facing explanation of the failure.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class LLMAuthError(LLMError):
    """Missing, malformed, or rejected API key. Fatal for a whole batch."""


class LLMRateLimitError(LLMError):
    """The provider is throttling requests; wait and retry later."""


class LLMQuotaExceededError(LLMError):
    """The account has run out of quota or credit."""


class LLMServiceUnavailableError(LLMError):
    """The provider returned a 5xx status or the call timed out."""


class LLMModelNotFoundError(LLMError):
    """The configured model does not exist or is not accessible."""


class LLMNetworkError(LLMError):
    """The provider could not be reached (DNS, connection refused, reset)."""


class LLMUnknownError(LLMError):
    """Any provider failure that does not fit another category."""

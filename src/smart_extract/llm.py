"""Chat-completion client over litellm with typed error classification.

Every provider failure is mapped to one ``LLMError`` subclass carrying a
user-facing message. No call is retried: ``max_retries=0`` is passed to
litellm and a failed call surfaces immediately.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import litellm
import structlog

from smart_extract.exceptions import (
    LLMAuthError,
    LLMError,
    LLMModelNotFoundError,
    LLMNetworkError,
    LLMQuotaExceededError,
    LLMRateLimitError,
    LLMServiceUnavailableError,
    LLMUnknownError,
)
from smart_extract.models import AnalysisRequest

if TYPE_CHECKING:
    from smart_extract.config import LLMSettings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that analyzes tasks and provides structured, "
    "actionable insights."
)

_KEY_PREFIXES: dict[str, str] = {
    "openai": "sk-",
    "anthropic": "sk-ant-",
    "google": "AIza",
}

_PROVIDER_NAMES: dict[str, str] = {
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "google": "Google",
}

_SERVER_ERROR_CODES = frozenset({500, 502, 503, 504})

_CONNECTION_TEST_PROMPT = (
    'Respond with valid JSON containing only: '
    '{"status": "ok", "message": "Connection test successful"}'
)


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def mask_api_key(key: str) -> str:
    """Mask a key for display, keeping the first and last four characters."""
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


def validate_api_key(provider: str, key: str) -> None:
    """Check that a key is present and has the provider's prefix.

    Args:
        provider: ``openai``, ``anthropic`` or ``google``.
        key: The API key.

    Raises:
        LLMAuthError: If the key is empty or malformed.
    """
    name = _PROVIDER_NAMES.get(provider, provider)
    if not key.strip():
        raise LLMAuthError(f"{name} API key not configured")
    prefix = _KEY_PREFIXES.get(provider)
    if prefix and not key.startswith(prefix):
        raise LLMAuthError(
            f'Invalid API key format - {name} keys should start with "{prefix}"'
        )


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


def classify_error(exc: Exception, model: str) -> LLMError:
    """Map a provider exception to the matching ``LLMError`` subclass.

    Args:
        exc: Exception raised by ``litellm.acompletion``.
        model: Model name, quoted in the model-not-found message.

    Returns:
        The classified error, ready to raise.
    """
    message = str(exc)
    lowered = message.lower()
    status = getattr(exc, "status_code", None)

    # Timeouts subclass the connection error type; check them first
    if isinstance(exc, litellm.Timeout):
        return LLMServiceUnavailableError(
            "The AI service timed out. Please try again in a few minutes."
        )
    if isinstance(exc, litellm.APIConnectionError):
        return LLMNetworkError("Network error - please check your internet connection")
    if "insufficient_quota" in lowered or (status == 429 and "quota" in lowered):
        return LLMQuotaExceededError("API quota exceeded - please check your billing")
    if status in (401, 403) or isinstance(exc, litellm.AuthenticationError):
        return LLMAuthError("Invalid API key - please check your API key")
    if status == 429 or isinstance(exc, litellm.RateLimitError):
        return LLMRateLimitError("Rate limit exceeded. Please wait and try again later.")
    if status == 404 or "model_not_found" in lowered:
        return LLMModelNotFoundError(
            f'Model "{model}" not found. Please select a different model.'
        )
    if status in _SERVER_ERROR_CODES:
        return LLMServiceUnavailableError(
            "The AI service is temporarily unavailable. "
            "Please try again in a few minutes."
        )
    return LLMUnknownError(message or "Unknown API error")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LLMClient:
    """Sends one prompt per call to the configured chat-completion model.

    Attributes:
        settings: Provider, model, sampling and timeout configuration.
    """

    def __init__(self, settings: LLMSettings) -> None:
        self.settings = settings

    @property
    def model_id(self) -> str:
        """The litellm model identifier, ``provider/model``."""
        return f"{self.settings.provider}/{self.settings.model}"

    def build_request(
        self,
        prompt: str,
        require_json: bool = True,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AnalysisRequest:
        return AnalysisRequest(
            prompt=prompt,
            require_structured_output=require_json,
            model=self.model_id,
            max_tokens=max_tokens or self.settings.max_tokens,
            temperature=(
                self.settings.temperature if temperature is None else temperature
            ),
        )

    async def complete(
        self,
        prompt: str,
        require_json: bool = True,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> str:
        """Run one chat completion and return the reply text.

        Args:
            prompt: The user message.
            require_json: Ask the provider for a JSON object reply. The
                reply is not validated here.
            max_tokens: Override for ``settings.max_tokens``.
            temperature: Override for ``settings.temperature``.
            system_prompt: The system message.

        Returns:
            The model's reply text.

        Raises:
            LLMAuthError: If the key is missing, malformed or rejected.
            LLMError: Any other classified provider failure.
        """
        api_key = self.settings.resolved_api_key()
        validate_api_key(self.settings.provider, api_key)

        request = self.build_request(
            prompt, require_json, max_tokens=max_tokens, temperature=temperature
        )
        kwargs: dict[str, Any] = {
            "model": request.model,
            "api_key": api_key,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": request.prompt},
            ],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "timeout": self.settings.timeout,
            "max_retries": 0,
        }
        if request.require_structured_output:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as exc:
            error = classify_error(exc, self.settings.model)
            logger.warning(
                "llm_call_failed",
                model=request.model,
                error_type=type(error).__name__,
                error=str(exc),
            )
            raise error from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise LLMUnknownError("No response from model")

        usage = getattr(response, "usage", None)
        logger.debug(
            "llm_call_ok",
            model=request.model,
            prompt_chars=len(request.prompt),
            reply_chars=len(content),
            total_tokens=getattr(usage, "total_tokens", None),
        )
        return str(content)

    async def test_connection(self) -> bool:
        """Send a tiny prompt and report whether the provider answered sensibly."""
        try:
            reply = await self.complete(_CONNECTION_TEST_PROMPT, max_tokens=50)
        except LLMError as exc:
            logger.warning("llm_connection_test_failed", error=exc.message)
            return False

        try:
            parsed = json.loads(reply)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict) and parsed.get("status") == "ok":
            return True
        lowered = reply.lower()
        return "ok" in lowered or "success" in lowered

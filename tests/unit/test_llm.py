"""Unit tests for smart_extract.llm - key checks, error mapping, completion calls."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock, patch

import litellm
import pytest

from smart_extract.config import LLMSettings
from smart_extract.exceptions import (
    LLMAuthError,
    LLMModelNotFoundError,
    LLMNetworkError,
    LLMQuotaExceededError,
    LLMRateLimitError,
    LLMServiceUnavailableError,
    LLMUnknownError,
)
from smart_extract.llm import (
    DEFAULT_SYSTEM_PROMPT,
    LLMClient,
    classify_error,
    mask_api_key,
    validate_api_key,
)

CompletionFactory = Callable[[str | None], MagicMock]


class ProviderError(Exception):
    """Stand-in for a provider SDK error carrying an HTTP status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _client(**overrides: object) -> LLMClient:
    params: dict[str, object] = {"api_key": "sk-test-1234567890abcdef"}
    params.update(overrides)
    return LLMClient(LLMSettings(**params))  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


class TestMaskApiKey:
    """mask_api_key hides the middle of a key."""

    def test_long_key(self) -> None:
        assert mask_api_key("sk-abcdefghijklmnop") == "sk-a...mnop"

    def test_short_key_fully_masked(self) -> None:
        assert mask_api_key("sk-1234") == "****"


class TestValidateApiKey:
    """validate_api_key checks presence and provider prefix."""

    def test_missing_key(self) -> None:
        with pytest.raises(LLMAuthError, match="OpenAI API key not configured"):
            validate_api_key("openai", "  ")

    def test_wrong_prefix(self) -> None:
        with pytest.raises(LLMAuthError, match='should start with "sk-"'):
            validate_api_key("openai", "pk-123456789")

    def test_anthropic_prefix(self) -> None:
        validate_api_key("anthropic", "sk-ant-abcdef")
        with pytest.raises(LLMAuthError, match="Anthropic"):
            validate_api_key("anthropic", "sk-abcdef")

    def test_valid_key(self) -> None:
        validate_api_key("openai", "sk-valid-key")


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class TestClassifyError:
    """classify_error maps provider failures to typed errors."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (401, LLMAuthError),
            (403, LLMAuthError),
            (429, LLMRateLimitError),
            (404, LLMModelNotFoundError),
            (500, LLMServiceUnavailableError),
            (502, LLMServiceUnavailableError),
            (503, LLMServiceUnavailableError),
            (504, LLMServiceUnavailableError),
        ],
    )
    def test_status_codes(self, status: int, expected: type[Exception]) -> None:
        assert isinstance(classify_error(ProviderError("boom", status), "gpt-4o"), expected)

    def test_quota_beats_rate_limit(self) -> None:
        err = classify_error(ProviderError("You exceeded your current quota", 429), "m")
        assert isinstance(err, LLMQuotaExceededError)

    def test_insufficient_quota_code(self) -> None:
        err = classify_error(ProviderError("error code: insufficient_quota"), "m")
        assert isinstance(err, LLMQuotaExceededError)

    def test_model_not_found_message(self) -> None:
        err = classify_error(ProviderError("model_not_found"), "gpt-9")
        assert isinstance(err, LLMModelNotFoundError)
        assert '"gpt-9"' in err.message

    def test_rate_limit_message(self) -> None:
        err = classify_error(ProviderError("slow down", 429), "m")
        assert err.message == "Rate limit exceeded. Please wait and try again later."

    def test_timeout(self) -> None:
        exc = litellm.Timeout(message="timed out", model="gpt-4o", llm_provider="openai")
        assert isinstance(classify_error(exc, "gpt-4o"), LLMServiceUnavailableError)

    def test_connection_error(self) -> None:
        exc = litellm.APIConnectionError(
            message="connection refused", llm_provider="openai", model="gpt-4o"
        )
        assert isinstance(classify_error(exc, "gpt-4o"), LLMNetworkError)

    def test_unknown_keeps_message(self) -> None:
        err = classify_error(ProviderError("something odd"), "m")
        assert isinstance(err, LLMUnknownError)
        assert err.message == "something odd"

    def test_unknown_without_message(self) -> None:
        err = classify_error(ProviderError(""), "m")
        assert err.message == "Unknown API error"


# ---------------------------------------------------------------------------
# LLMClient
# ---------------------------------------------------------------------------


class TestBuildRequest:
    """build_request fills defaults from settings."""

    def test_defaults(self) -> None:
        request = _client().build_request("hello")
        assert request.model == "openai/gpt-4.1-mini"
        assert request.max_tokens == 500
        assert request.temperature == 0.7
        assert request.require_structured_output is True

    def test_overrides(self) -> None:
        request = _client().build_request("hi", False, max_tokens=2000, temperature=0.0)
        assert request.max_tokens == 2000
        assert request.temperature == 0.0
        assert request.require_structured_output is False


class TestComplete:
    """complete sends one request and returns the reply text."""

    @pytest.mark.asyncio
    async def test_json_mode_request(self, completion: CompletionFactory) -> None:
        with patch(
            "litellm.acompletion", new_callable=AsyncMock, return_value=completion('{"a": 1}')
        ) as mock_call:
            reply = await _client().complete("Analyze this")

        assert reply == '{"a": 1}'
        kwargs = mock_call.await_args.kwargs
        assert kwargs["model"] == "openai/gpt-4.1-mini"
        assert kwargs["api_key"] == "sk-test-1234567890abcdef"
        assert kwargs["max_retries"] == 0
        assert kwargs["timeout"] == 60
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": DEFAULT_SYSTEM_PROMPT}
        assert kwargs["messages"][1] == {"role": "user", "content": "Analyze this"}

    @pytest.mark.asyncio
    async def test_plain_text_mode(self, completion: CompletionFactory) -> None:
        with patch(
            "litellm.acompletion", new_callable=AsyncMock, return_value=completion("summary")
        ) as mock_call:
            await _client().complete("Summarize", require_json=False)
        assert "response_format" not in mock_call.await_args.kwargs

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_network(self) -> None:
        client = LLMClient(LLMSettings())
        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            with pytest.raises(LLMAuthError, match="not configured"):
                await client.complete("hi")
        mock_call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_key_from_environment(
        self, monkeypatch: pytest.MonkeyPatch, completion: CompletionFactory
    ) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env-123456")
        with patch(
            "litellm.acompletion", new_callable=AsyncMock, return_value=completion("ok")
        ) as mock_call:
            await LLMClient(LLMSettings()).complete("hi")
        assert mock_call.await_args.kwargs["api_key"] == "sk-from-env-123456"

    @pytest.mark.asyncio
    async def test_empty_reply_raises(self, completion: CompletionFactory) -> None:
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=completion("")):
            with pytest.raises(LLMUnknownError, match="No response from model"):
                await _client().complete("hi")

    @pytest.mark.asyncio
    async def test_no_choices_raises(self) -> None:
        response = MagicMock()
        response.choices = []
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=response):
            with pytest.raises(LLMUnknownError):
                await _client().complete("hi")

    @pytest.mark.asyncio
    async def test_provider_error_classified(self) -> None:
        with patch(
            "litellm.acompletion",
            new_callable=AsyncMock,
            side_effect=ProviderError("Incorrect API key provided", 401),
        ):
            with pytest.raises(LLMAuthError) as exc_info:
                await _client().complete("hi")
        assert isinstance(exc_info.value.__cause__, ProviderError)

    @pytest.mark.asyncio
    async def test_single_attempt_on_failure(self) -> None:
        with patch(
            "litellm.acompletion",
            new_callable=AsyncMock,
            side_effect=ProviderError("overloaded", 503),
        ) as mock_call:
            with pytest.raises(LLMServiceUnavailableError):
                await _client().complete("hi")
        assert mock_call.await_count == 1


class TestConnection:
    """test_connection reports whether the provider answered."""

    @pytest.mark.asyncio
    async def test_ok_json(self, completion: CompletionFactory) -> None:
        reply = completion('{"status": "ok", "message": "Connection test successful"}')
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=reply):
            assert await _client().test_connection() is True

    @pytest.mark.asyncio
    async def test_ok_substring(self, completion: CompletionFactory) -> None:
        with patch(
            "litellm.acompletion", new_callable=AsyncMock, return_value=completion("Success!")
        ):
            assert await _client().test_connection() is True

    @pytest.mark.asyncio
    async def test_failure_returns_false(self) -> None:
        with patch(
            "litellm.acompletion",
            new_callable=AsyncMock,
            side_effect=ProviderError("bad key", 401),
        ):
            assert await _client().test_connection() is False

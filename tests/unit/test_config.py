"""Unit tests for smart_extract.config - Settings loading and validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from smart_extract.config import (
    CacheSettings,
    LLMSettings,
    LoggingSettings,
    ScrapingSettings,
    Settings,
    format_validation_error,
)

if TYPE_CHECKING:
    from pathlib import Path

# ---- Sub-model defaults ------------------------------------------------------


class TestLLMSettings:
    """LLMSettings should have sensible defaults and validation."""

    def test_default_values(self) -> None:
        s = LLMSettings()
        assert s.provider == "openai"
        assert s.model == "gpt-4.1-mini"
        assert s.max_tokens == 500
        assert s.temperature == 0.7
        assert s.video_max_tokens == 2000
        assert s.video_temperature == 0.2
        assert s.timeout == 60

    def test_invalid_temperature_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LLMSettings(temperature=3.0)

    def test_zero_max_tokens_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LLMSettings(max_tokens=0)

    def test_unknown_provider_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LLMSettings(provider="cohere")  # type: ignore[arg-type]

    def test_api_key_is_secret(self) -> None:
        s = LLMSettings(api_key="sk-secret-value")
        assert "sk-secret-value" not in repr(s)
        assert s.resolved_api_key() == "sk-secret-value"

    def test_api_key_falls_back_to_provider_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-from-env")
        s = LLMSettings(provider="anthropic")
        assert s.resolved_api_key() == "sk-ant-from-env"

    def test_missing_api_key_resolves_empty(self) -> None:
        assert LLMSettings().resolved_api_key() == ""


class TestScrapingSettings:
    """ScrapingSettings defaults."""

    def test_default_values(self) -> None:
        s = ScrapingSettings()
        assert s.timeout == 20
        assert s.max_content_chars == 4000
        assert s.max_transcript_chars == 8000
        assert s.reddit_min_chars == 100
        assert "Mozilla" in s.user_agent


class TestCacheSettings:
    """CacheSettings defaults and TTL conversion."""

    def test_default_values(self) -> None:
        s = CacheSettings()
        assert s.enabled is True
        assert s.ttl_hours == 24
        assert s.context_sensitive is False

    def test_ttl_seconds(self) -> None:
        assert CacheSettings(ttl_hours=0.5).ttl_seconds == 1800

    def test_zero_ttl_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheSettings(ttl_hours=0)


class TestLoggingSettings:
    """LoggingSettings defaults."""

    def test_defaults(self) -> None:
        s = LoggingSettings()
        assert s.level == "INFO"
        assert s.format == "console"
        assert s.file is None

    def test_invalid_format_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoggingSettings(format="xml")  # type: ignore[arg-type]


# ---- Top-level Settings ------------------------------------------------------


class TestSettings:
    """Top-level Settings should compose all sub-models and resolve layers."""

    def test_default_construction(self) -> None:
        s = Settings()
        assert isinstance(s.llm, LLMSettings)
        assert isinstance(s.scraping, ScrapingSettings)
        assert isinstance(s.cache, CacheSettings)
        assert isinstance(s.logging, LoggingSettings)

    def test_env_var_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SMART_EXTRACT_LLM__TEMPERATURE", "0.5")
        assert Settings().llm.temperature == 0.5

    def test_nested_env_var_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SMART_EXTRACT_CACHE__TTL_HOURS", "6")
        assert Settings().cache.ttl_hours == 6

    def test_extra_fields_ignored(self) -> None:
        s = Settings(unknown_field="should_be_ignored")  # type: ignore[call-arg]
        assert isinstance(s.llm, LLMSettings)

    def test_load_with_overrides(self) -> None:
        s = Settings.load(llm=LLMSettings(temperature=0.9))
        assert s.llm.temperature == 0.9

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        config = tmp_path / "custom.yaml"
        config.write_text(
            "llm:\n  model: gpt-4o-mini\ncache:\n  enabled: false\n", encoding="utf-8"
        )
        s = Settings.load(config_path=config)
        assert s.llm.model == "gpt-4o-mini"
        assert s.cache.enabled is False

    def test_env_beats_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config = tmp_path / "custom.yaml"
        config.write_text("llm:\n  model: gpt-4o-mini\n", encoding="utf-8")
        monkeypatch.setenv("SMART_EXTRACT_LLM__MODEL", "gpt-4o")
        assert Settings.load(config_path=config).llm.model == "gpt-4o"

    def test_default_yaml_in_working_directory(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("scraping:\n  timeout: 7\n", encoding="utf-8")
        assert Settings.load().scraping.timeout == 7

    def test_config_path_override_reset(self, tmp_path: Path) -> None:
        config = tmp_path / "custom.yaml"
        config.write_text("scraping:\n  timeout: 9\n", encoding="utf-8")
        Settings.load(config_path=config)
        assert Settings.load().scraping.timeout == 20

    def test_invalid_yaml_value_raises(self, tmp_path: Path) -> None:
        config = tmp_path / "bad.yaml"
        config.write_text("llm:\n  temperature: 5\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            Settings.load(config_path=config)


class TestFormatValidationError:
    """format_validation_error renders one line per error."""

    def test_includes_location_and_input(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            LLMSettings(temperature=3.0)
        message = format_validation_error(exc_info.value)
        assert message.startswith("Configuration error:")
        assert "temperature" in message
        assert "got 3.0" in message

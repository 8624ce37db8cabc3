"""Configuration with 4-layer resolution: defaults -> YAML -> env -> CLI.

Uses pydantic-settings with YamlConfigSettingsSource for layered configuration.
Supports ``.env`` file loading, ``SMART_EXTRACT_`` prefixed env vars, and
nested delimiter ``__`` for overriding sub-model fields, e.g.
``SMART_EXTRACT_CACHE__TTL_HOURS=6``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, ClassVar, Literal

import structlog
from pydantic import BaseModel, Field, SecretStr, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from smart_extract.exceptions import ConfigurationError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Provider-native environment variables consulted when no key is configured.
_PROVIDER_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GEMINI_API_KEY",
}


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class LLMSettings(BaseModel):
    """LLM provider configuration."""

    provider: Literal["openai", "anthropic", "google"] = "openai"
    model: str = "gpt-4.1-mini"
    api_key: SecretStr | None = Field(
        default=None,
        description="Provider API key. Falls back to the provider's env var.",
    )
    max_tokens: int = Field(default=500, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    video_max_tokens: int = Field(
        default=2000, gt=0, description="Token ceiling for video analysis calls."
    )
    video_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    timeout: int = Field(default=60, gt=0, description="Request timeout in seconds.")

    def resolved_api_key(self) -> str:
        """Return the configured key, or the provider env var, or ``""``."""
        if self.api_key is not None:
            return self.api_key.get_secret_value()
        return os.environ.get(_PROVIDER_KEY_ENV[self.provider], "")


class ScrapingSettings(BaseModel):
    """Content fetching and extraction configuration."""

    timeout: int = Field(
        default=20, gt=0, description="Per-request timeout in seconds."
    )
    user_agent: str = _DEFAULT_USER_AGENT
    max_content_chars: int = Field(
        default=4000,
        gt=0,
        description="Hard cut applied to extracted text before summarization.",
    )
    max_transcript_chars: int = Field(
        default=8000, gt=0, description="Transcript characters sent in video prompts."
    )
    reddit_min_chars: int = Field(
        default=100,
        ge=0,
        description="Reddit content at or below this length falls through.",
    )


class CacheSettings(BaseModel):
    """URL summary cache configuration."""

    enabled: bool = True
    ttl_hours: float = Field(default=24, gt=0)
    context_sensitive: bool = Field(
        default=False,
        description="Key summaries by URL plus a hash of the task text.",
    )
    directory: Path | None = Field(
        default=None,
        description="Persistent diskcache directory; a temporary one is used when unset.",
    )

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_hours * 3600


class LoggingSettings(BaseModel):
    """Logging / observability configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Main Settings (4-layer resolution)
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Top-level application settings.

    Resolution order (last wins):
        1. Field defaults (defined above)
        2. YAML config file (``config.yaml`` or ``--config`` path)
        3. Environment variables (prefixed ``SMART_EXTRACT_``)
        4. CLI overrides (applied programmatically after loading)
    """

    model_config = SettingsConfigDict(
        env_prefix="SMART_EXTRACT_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="config.yaml",
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    _config_path_override: ClassVar[Path | None] = None

    llm: LLMSettings = Field(default_factory=LLMSettings)
    scraping: ScrapingSettings = Field(default_factory=ScrapingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Resolution order (first = highest priority):
            init_settings (CLI) > env_settings > dotenv (.env) > yaml > defaults

        Args:
            settings_cls: The settings class.
            init_settings: Init / programmatic overrides.
            env_settings: Environment variable source.
            dotenv_settings: Dotenv file source (.env).
            file_secret_settings: Secret file source (unused).

        Returns:
            Ordered tuple of settings sources (first = highest priority).
        """
        yaml_file = cls._config_path_override or settings_cls.model_config.get(
            "yaml_file", "config.yaml"
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
        )

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> Settings:
        """Load settings with optional config path and CLI overrides.

        Args:
            config_path: Optional path to a YAML config file.
            **overrides: Key-value CLI overrides applied at highest priority.

        Returns:
            Fully-resolved Settings instance.

        Raises:
            ConfigurationError: If ``config_path`` does not exist.
            ValidationError: If any setting value fails validation.
        """
        if config_path is not None and not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise ConfigurationError(msg)

        cls._config_path_override = config_path
        try:
            return cls(**overrides)
        finally:
            cls._config_path_override = None


def format_validation_error(exc: ValidationError) -> str:
    """Format a Pydantic ValidationError into a user-friendly message.

    Args:
        exc: The validation error to format.

    Returns:
        A multi-line string with each error on its own line.
    """
    lines: list[str] = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        msg = error["msg"]
        raw_input = error.get("input")
        if raw_input is not None:
            lines.append(f"  {loc}: {msg} (got {raw_input!r})")
        else:
            lines.append(f"  {loc}: {msg}")
    return "Configuration error:\n" + "\n".join(lines)

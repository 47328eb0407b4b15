"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with sensible defaults. Supports .env files and nested configuration.

Example:
    >>> from biancatools.config import get_settings
    >>> settings = get_settings()
    >>> settings.cache.ttl
    300.0

    # Or with environment variables:
    # BIANCA_CACHE_TTL=60
    # BIANCA_LOG_LEVEL=DEBUG
    # GITHUB_TOKEN=ghp_...
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import (
    AliasChoices,
    Field,
    NonNegativeInt,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    computed_field,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from biancatools import __version__


class ServerSettings(BaseSettings):
    """Identity advertised to protocol clients."""

    model_config = SettingsConfigDict(env_prefix="BIANCA_SERVER_", extra="ignore")

    name: str = "BiancaTools"
    version: str = __version__


class LoggingSettings(BaseSettings):
    """Logging configuration. Records always go to stderr."""

    model_config = SettingsConfigDict(env_prefix="BIANCA_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class CacheSettings(BaseSettings):
    """Result cache for read-only tools."""

    model_config = SettingsConfigDict(env_prefix="BIANCA_CACHE_", extra="ignore")

    enabled: bool = True
    ttl: PositiveFloat = Field(default=300.0, description="Entry lifetime in seconds")
    max_entries: NonNegativeInt = Field(default=1000, description="LRU ceiling (0 = unbounded)")


class RateLimitSettings(BaseSettings):
    """Per-tool sliding-window rate limiting."""

    model_config = SettingsConfigDict(env_prefix="BIANCA_RATELIMIT_", extra="ignore")

    enabled: bool = True
    max_calls: PositiveInt = Field(default=60, description="Max calls per window")
    window_seconds: PositiveFloat = Field(default=60.0, description="Window length in seconds")


class BrowserSettings(BaseSettings):
    """Headless browser session."""

    model_config = SettingsConfigDict(env_prefix="BIANCA_BROWSER_", extra="ignore")

    headless: bool = True
    default_timeout: PositiveFloat = Field(default=30.0, description="Navigation timeout in seconds")
    action_timeout: PositiveFloat = Field(default=5.0, description="Click/type timeout in seconds")
    viewport_width: PositiveInt = 1280
    viewport_height: PositiveInt = 800
    idle_timeout: PositiveFloat = Field(default=300.0, description="Close browser after this much inactivity")
    sweep_interval: PositiveFloat = Field(default=60.0, description="Idle check period in seconds")


class GitHubSettings(BaseSettings):
    """Hosted source-control REST API."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_", extra="ignore", populate_by_name=True)

    token: SecretStr | None = Field(default=None, validation_alias=AliasChoices("GITHUB_TOKEN"))
    api_url: str = Field(default="https://api.github.com", validation_alias=AliasChoices("GITHUB_API_URL"))
    api_version: str = "2022-11-28"
    request_timeout: PositiveFloat = 30.0


class GitSettings(BaseSettings):
    """Local git invocations."""

    model_config = SettingsConfigDict(env_prefix="BIANCA_GIT_", extra="ignore")

    binary: str = "git"
    cwd: str | None = Field(default=None, description="Working tree (defaults to process cwd)")


class MemorySettings(BaseSettings):
    """Memory-store REST API."""

    model_config = SettingsConfigDict(env_prefix="MEM0_", extra="ignore", populate_by_name=True)

    api_key: SecretStr | None = Field(default=None, validation_alias=AliasChoices("MEM0_API_KEY"))
    org_id: str | None = Field(default=None, validation_alias=AliasChoices("MEM0_ORG_ID"))
    project_id: str | None = Field(default=None, validation_alias=AliasChoices("MEM0_PROJECT_ID"))
    base_url: str = Field(default="https://api.mem0.ai", validation_alias=AliasChoices("MEM0_BASE_URL"))
    request_timeout: PositiveFloat = 30.0


class AgentSettings(BaseSettings):
    """External coding-agent CLI."""

    model_config = SettingsConfigDict(env_prefix="BIANCA_AGENT_", extra="ignore", populate_by_name=True)

    cli_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("BIANCA_AGENT_CLI_NAME", "CLAUDE_CLI_NAME"),
    )
    timeout: Annotated[float, Field(gt=0)] = Field(default=30 * 60.0, description="Hard execution limit in seconds")
    debug: bool = Field(default=False, validation_alias=AliasChoices("BIANCA_AGENT_DEBUG", "MCP_CLAUDE_DEBUG"))


class Settings(BaseSettings):
    """Root settings.

    Loads configuration from environment variables (and a .env file).
    Each section reads its own prefix, credentials use their conventional
    names (GITHUB_TOKEN, MEM0_API_KEY).
    """

    model_config = SettingsConfigDict(
        env_prefix="BIANCA_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Enable debug mode")

    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    git: GitSettings = Field(default_factory=GitSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)

    @computed_field
    @property
    def user_agent(self) -> str:
        return f"{self.server.name}/{self.server.version}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the global settings instance (cached)."""
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()

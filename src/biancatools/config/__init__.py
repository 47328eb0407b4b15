"""Configuration management using pydantic-settings."""

from .logging import configure_logging
from .settings import (
    AgentSettings,
    BrowserSettings,
    CacheSettings,
    GitHubSettings,
    GitSettings,
    LoggingSettings,
    MemorySettings,
    RateLimitSettings,
    ServerSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "AgentSettings",
    "BrowserSettings",
    "CacheSettings",
    "GitHubSettings",
    "GitSettings",
    "LoggingSettings",
    "MemorySettings",
    "RateLimitSettings",
    "ServerSettings",
    "Settings",
    "clear_settings_cache",
    "configure_logging",
    "get_settings",
]

"""Tests for environment-driven settings and logging setup."""

from __future__ import annotations

import logging
import sys

import pytest

from biancatools.config import (
    LoggingSettings,
    Settings,
    clear_settings_cache,
    configure_logging,
    get_settings,
)


def test_defaults() -> None:
    settings = Settings()
    assert settings.cache.ttl == 300.0
    assert settings.cache.max_entries == 1000
    assert settings.rate_limit.max_calls == 60
    assert settings.browser.idle_timeout == 300.0
    assert settings.agent.timeout == 1800.0
    assert settings.github.api_url == "https://api.github.com"
    assert settings.user_agent == f"{settings.server.name}/{settings.server.version}"


def test_section_prefixes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BIANCA_CACHE_TTL", "60")
    monkeypatch.setenv("BIANCA_BROWSER_HEADLESS", "false")
    monkeypatch.setenv("BIANCA_LOG_LEVEL", "DEBUG")

    settings = Settings()
    assert settings.cache.ttl == 60.0
    assert settings.browser.headless is False
    assert settings.logging.level == "DEBUG"


def test_conventional_credential_names(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_secret")
    monkeypatch.setenv("MEM0_API_KEY", "m0-secret")
    monkeypatch.setenv("MEM0_ORG_ID", "org-1")
    monkeypatch.setenv("CLAUDE_CLI_NAME", "/usr/local/bin/claude")
    monkeypatch.setenv("MCP_CLAUDE_DEBUG", "true")

    settings = Settings()
    assert settings.github.token is not None
    assert settings.github.token.get_secret_value() == "ghp_secret"
    assert "ghp_secret" not in repr(settings.github)
    assert settings.memory.api_key.get_secret_value() == "m0-secret"
    assert settings.memory.org_id == "org-1"
    assert settings.agent.cli_name == "/usr/local/bin/claude"
    assert settings.agent.debug is True


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    clear_settings_cache()
    first = get_settings()
    assert get_settings() is first

    monkeypatch.setenv("BIANCA_DEBUG", "true")
    clear_settings_cache()
    try:
        assert get_settings().debug is True
    finally:
        clear_settings_cache()


@pytest.fixture
def restore_logger():
    log = logging.getLogger("biancatools")
    handlers, level, propagate = list(log.handlers), log.level, log.propagate
    yield
    log.handlers[:] = handlers
    log.setLevel(level)
    log.propagate = propagate


@pytest.mark.usefixtures("restore_logger")
def test_configure_logging_targets_stderr_once() -> None:
    configure_logging(LoggingSettings(level="WARNING"))
    log = configure_logging(LoggingSettings(level="DEBUG"))

    ours = [h for h in log.handlers if getattr(h, "_biancatools", False)]
    assert len(ours) == 1
    assert isinstance(ours[0], logging.StreamHandler)
    assert ours[0].stream is sys.stderr
    assert log.level == logging.DEBUG
    assert logging.getLogger("biancatools.registry").getEffectiveLevel() == logging.DEBUG

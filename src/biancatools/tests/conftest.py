"""Shared fixtures: isolated settings, fake clock, server state."""

from __future__ import annotations

import pytest

from biancatools.config import GitHubSettings, MemorySettings, Settings
from biancatools.core import ServerState

from .helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        github=GitHubSettings(GITHUB_TOKEN="test-token", GITHUB_API_URL="https://api.github.test"),
        memory=MemorySettings(MEM0_API_KEY="test-key", MEM0_BASE_URL="https://mem0.test"),
    )


@pytest.fixture
def state(settings: Settings) -> ServerState:
    return ServerState(settings)

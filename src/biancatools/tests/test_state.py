"""Tests for server state: activity tracking, idle browser shutdown, teardown."""

from __future__ import annotations

import asyncio

import pytest

from biancatools.config import BrowserSettings, Settings
from biancatools.core import ServerState
from biancatools.tools.browser import BrowserSession, screenshot_path

from .helpers import FakeClock


class FakeSession:
    """Stands in for BrowserSession without launching chromium."""

    def __init__(self, open_: bool = True) -> None:
        self.is_open = open_
        self.closed = 0

    async def close(self) -> None:
        self.closed += 1
        self.is_open = False


class FakeClient:
    def __init__(self) -> None:
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.parametrize(
    ("given", "expected"),
    [
        ("shot", "shot.png"),
        ("out/page.png", "out/page.png"),
        ("photo.JPG", "photo.JPG"),
        ("photo.jpeg", "photo.jpeg"),
        ("diagram.svg", "diagram.svg.png"),
    ],
)
def test_screenshot_path(given: str, expected: str) -> None:
    assert screenshot_path(given) == expected


@pytest.mark.asyncio
async def test_unopened_session_closes_cleanly(settings: Settings) -> None:
    session = BrowserSession(settings.browser)
    assert not session.is_open
    await session.close()
    await session.close()


def test_touch_counts_requests(settings: Settings, clock: FakeClock) -> None:
    state = ServerState(settings, clock=clock)
    clock.advance(30)
    assert state.idle_for == 30
    state.touch()
    state.touch()
    assert state.request_count == 2
    assert state.idle_for == 0


@pytest.mark.asyncio
async def test_idle_browser_is_closed_after_window(settings: Settings, clock: FakeClock) -> None:
    session = FakeSession()
    state = ServerState(settings, browser=session, clock=clock)  # type: ignore[arg-type]
    idle = settings.browser.idle_timeout

    clock.advance(idle)
    assert not await state.close_idle_browser()
    assert session.closed == 0

    clock.advance(1)
    assert await state.close_idle_browser()
    assert session.closed == 1

    # Already closed: nothing to do
    clock.advance(idle * 2)
    assert not await state.close_idle_browser()


@pytest.mark.asyncio
async def test_activity_keeps_browser_open(settings: Settings, clock: FakeClock) -> None:
    session = FakeSession()
    state = ServerState(settings, browser=session, clock=clock)  # type: ignore[arg-type]

    clock.advance(settings.browser.idle_timeout)
    state.touch()
    clock.advance(settings.browser.idle_timeout)
    assert not await state.close_idle_browser()


@pytest.mark.asyncio
async def test_in_flight_request_keeps_browser_open(settings: Settings, clock: FakeClock) -> None:
    session = FakeSession()
    state = ServerState(settings, browser=session, clock=clock)  # type: ignore[arg-type]
    idle = settings.browser.idle_timeout

    state.begin_request()
    clock.advance(idle * 3)
    assert state.in_flight == 1
    assert not await state.close_idle_browser()
    assert session.closed == 0

    state.end_request()
    assert state.in_flight == 0
    assert state.request_count == 1
    clock.advance(idle + 1)
    assert await state.close_idle_browser()


def test_begin_request_stamps_activity(settings: Settings, clock: FakeClock) -> None:
    state = ServerState(settings, clock=clock)
    clock.advance(100)
    state.begin_request()
    assert state.idle_for == 0
    assert state.request_count == 0


def fast_sweep_settings(settings: Settings) -> Settings:
    return settings.model_copy(update={"browser": BrowserSettings(idle_timeout=0.01, sweep_interval=0.01)})


@pytest.mark.asyncio
async def test_sweep_idle_closes_browser_in_background(settings: Settings) -> None:
    session = FakeSession()
    state = ServerState(fast_sweep_settings(settings), browser=session)  # type: ignore[arg-type]

    sweeper = asyncio.create_task(state.sweep_idle())
    try:
        for _ in range(100):
            if session.closed:
                break
            await asyncio.sleep(0.01)
    finally:
        sweeper.cancel()
        with pytest.raises(asyncio.CancelledError):
            await sweeper
    assert session.closed == 1


@pytest.mark.asyncio
async def test_sweep_idle_survives_close_failure(settings: Settings) -> None:
    class BrokenSession(FakeSession):
        async def close(self) -> None:
            self.closed += 1
            if self.closed == 1:
                raise RuntimeError("browser crashed")
            self.is_open = False

    session = BrokenSession()
    state = ServerState(fast_sweep_settings(settings), browser=session)  # type: ignore[arg-type]

    sweeper = asyncio.create_task(state.sweep_idle())
    try:
        for _ in range(100):
            if not session.is_open:
                break
            await asyncio.sleep(0.01)
    finally:
        sweeper.cancel()
        with pytest.raises(asyncio.CancelledError):
            await sweeper
    assert session.closed == 2


@pytest.mark.asyncio
async def test_close_tears_down_every_handle(settings: Settings) -> None:
    session, github, memory = FakeSession(), FakeClient(), FakeClient()
    state = ServerState(settings, browser=session, github=github, memory=memory)  # type: ignore[arg-type]

    await state.close()
    assert session.closed == 1
    assert github.closed and memory.closed


def test_lazy_handles_are_singletons(settings: Settings) -> None:
    state = ServerState(settings)
    assert state.github is state.github
    assert state.memory is state.memory
    assert state.browser is state.browser

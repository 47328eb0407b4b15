"""Process-lifetime server state, owned explicitly and passed to every handler.

Holds at most one lazily-created handle per stateful adapter, plus request
accounting. Handles are shared by all in-flight requests without per-request
isolation: two interleaved browser calls act on the same page.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable

from ..config import Settings, get_settings

if TYPE_CHECKING:
    from ..tools.browser import BrowserSession
    from ..tools.github import GitHubClient
    from ..tools.memory import MemoryClient

logger = logging.getLogger("biancatools.state")


class ServerState:
    """Explicitly owned context threaded into the dispatcher and handlers.

    Args:
        settings: Configuration (default: global settings)
        browser: Pre-built browser session (tests); created on first use otherwise
        github: Pre-built GitHub client (tests); created on first use otherwise
        memory: Pre-built memory-store client (tests); created on first use otherwise
        clock: Monotonic time source for activity tracking

    Example:
        >>> state = ServerState()
        >>> page = await state.browser.page()
        >>> await state.close()
    """

    __slots__ = (
        "settings", "_browser", "_github", "_memory", "_clock",
        "request_count", "in_flight", "last_activity",
    )

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        browser: BrowserSession | None = None,
        github: GitHubClient | None = None,
        memory: MemoryClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or get_settings()
        self._browser = browser
        self._github = github
        self._memory = memory
        self._clock = clock
        self.request_count = 0
        self.in_flight = 0
        self.last_activity = clock()

    # ─────────────────────────────────────────────────────────────────
    # Lazy adapter handles
    # ─────────────────────────────────────────────────────────────────

    @property
    def browser(self) -> BrowserSession:
        if self._browser is None:
            from ..tools.browser import BrowserSession
            self._browser = BrowserSession(self.settings.browser)
        return self._browser

    @property
    def github(self) -> GitHubClient:
        if self._github is None:
            from ..tools.github import GitHubClient
            self._github = GitHubClient(self.settings.github, user_agent=self.settings.user_agent)
        return self._github

    @property
    def memory(self) -> MemoryClient:
        if self._memory is None:
            from ..tools.memory import MemoryClient
            self._memory = MemoryClient(self.settings.memory, user_agent=self.settings.user_agent)
        return self._memory

    # ─────────────────────────────────────────────────────────────────
    # Activity & lifecycle
    # ─────────────────────────────────────────────────────────────────

    def begin_request(self) -> None:
        """Mark a request as started: stamp activity and hold off the idle sweep."""
        self.in_flight += 1
        self.last_activity = self._clock()

    def end_request(self) -> None:
        """Mark a request begun with begin_request as finished, counting it."""
        self.in_flight = max(0, self.in_flight - 1)
        self.touch()

    def touch(self) -> None:
        """Count one request and stamp activity."""
        self.request_count += 1
        self.last_activity = self._clock()

    @property
    def idle_for(self) -> float:
        return self._clock() - self.last_activity

    async def close_idle_browser(self) -> bool:
        """Close the browser if idle past the configured window. Returns True if closed.

        Never closes while a request is in flight, however long it has run.
        """
        if self._browser is None or not self._browser.is_open:
            return False
        if self.in_flight > 0:
            return False
        if self.idle_for <= self.settings.browser.idle_timeout:
            return False
        logger.info(f"Closing browser after {self.idle_for:.0f}s of inactivity")
        await self._browser.close()
        return True

    async def sweep_idle(self) -> None:
        """Run forever, closing the browser after the inactivity window."""
        interval = self.settings.browser.sweep_interval
        while True:
            await asyncio.sleep(interval)
            try:
                await self.close_idle_browser()
            except Exception:
                logger.exception("Idle sweep failed to close browser")

    async def close(self) -> None:
        """Tear down every open adapter handle."""
        if self._browser is not None:
            await self._browser.close()
        if self._github is not None:
            await self._github.aclose()
            self._github = None
        if self._memory is not None:
            await self._memory.aclose()
            self._memory = None

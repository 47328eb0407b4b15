"""Headless browser tools on a single shared Playwright page.

The session is created on first use and shared by all requests; there is no
per-request isolation, so interleaved calls act on the same page and the
last navigation wins. The server closes it after an idle window.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pydantic import BaseModel, Field, StrictBool, StrictStr

from ..core import ToolCategory, ToolDescriptor, ToolMetadata, ToolName, ToolResult, success_response
from ..errors import ErrorKind, ToolException
from ..timeout import with_timeout

if TYPE_CHECKING:
    from ..config import BrowserSettings
    from ..core import ServerState

logger = logging.getLogger("biancatools.tools.browser")

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg")
LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class BrowserSession:
    """Lazily launched chromium with one reusable page.

    Relaunches if the browser disconnected and reopens the page if it was closed.

    Example:
        >>> session = BrowserSession(settings.browser)
        >>> page = await session.page()
        >>> await session.close()
    """

    __slots__ = ("_settings", "_playwright", "_browser", "_page")

    def __init__(self, settings: BrowserSettings) -> None:
        self._settings = settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    @property
    def settings(self) -> BrowserSettings:
        return self._settings

    @property
    def is_open(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def _launch(self) -> Browser:
        logger.info(f"Launching chromium (headless={self._settings.headless})")
        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            return await self._playwright.chromium.launch(headless=self._settings.headless, args=LAUNCH_ARGS)
        except PlaywrightError as e:
            await self.close()
            raise ToolException.create(
                ErrorKind.INTERNAL, f"Failed to initialize browser: {e}", {"type": type(e).__name__},
            ) from e

    async def page(self) -> Page:
        """The shared page, launching or reopening as needed."""
        browser = self._browser if self.is_open else None
        if browser is None:
            self._page = None
            browser = self._browser = await self._launch()
        if self._page is None or self._page.is_closed():
            self._page = await browser.new_page(viewport={
                "width": self._settings.viewport_width,
                "height": self._settings.viewport_height,
            })
            self._page.set_default_timeout(self._settings.default_timeout * 1000)
        return self._page

    async def close(self) -> None:
        """Close the browser and stop Playwright. Safe to call repeatedly."""
        browser, pw = self._browser, self._playwright
        self._page = self._browser = self._playwright = None
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing browser: {e}")
        if pw is not None:
            await pw.stop()
        if browser is not None:
            logger.info("Browser closed")


def screenshot_path(path: str) -> str:
    """Append .png unless the path already names an image format."""
    return path if path.lower().endswith(IMAGE_SUFFIXES) else f"{path}.png"


# ─────────────────────────────────────────────────────────────────────────────
# Params
# ─────────────────────────────────────────────────────────────────────────────

Selector = Annotated[StrictStr, Field(min_length=1, description="CSS selector of the element")]


class NavigateParams(BaseModel):
    url: Annotated[StrictStr, Field(min_length=1, description="URL to open")]


class ScreenshotParams(BaseModel):
    path: Annotated[StrictStr, Field(min_length=1, description="File path for the screenshot")]
    full_page: StrictBool = Field(default=False, description="Capture the full scrollable page")


class ClickParams(BaseModel):
    selector: Selector


class TypeParams(BaseModel):
    selector: Selector
    text: StrictStr = Field(..., description="Text to type")


class GetContentParams(BaseModel):
    pass


# ─────────────────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────────────────


async def navigate(params: NavigateParams, state: ServerState) -> ToolResult:
    session = state.browser
    page = await session.page()
    await with_timeout(
        lambda: page.goto(params.url, wait_until="networkidle"),
        session.settings.default_timeout,
        f"Navigation to {params.url} timed out",
    )
    return success_response({"url": page.url, "title": await page.title()}, f"Navigated to {params.url}")


async def screenshot(params: ScreenshotParams, state: ServerState) -> ToolResult:
    page = await state.browser.page()
    path = screenshot_path(params.path)
    await page.screenshot(path=path, full_page=params.full_page)
    return success_response({"path": path}, f"Screenshot saved to {path}")


async def _wait_visible(page: Page, selector: str, timeout: float) -> None:
    try:
        await page.locator(selector).first.wait_for(state="visible", timeout=timeout * 1000)
    except PlaywrightTimeoutError as e:
        raise ToolException.create(
            ErrorKind.NOT_FOUND, f"Element {selector} not found or not visible", {"selector": selector},
        ) from e


async def click(params: ClickParams, state: ServerState) -> ToolResult:
    session = state.browser
    page = await session.page()
    timeout = session.settings.action_timeout

    async def do_click() -> None:
        await _wait_visible(page, params.selector, timeout)
        await page.locator(params.selector).first.click()

    await with_timeout(do_click, timeout, f"Element {params.selector} not found or not clickable")
    return success_response({"selector": params.selector}, f"Clicked {params.selector}")


async def type_text(params: TypeParams, state: ServerState) -> ToolResult:
    session = state.browser
    page = await session.page()
    timeout = session.settings.action_timeout

    async def do_type() -> None:
        await _wait_visible(page, params.selector, timeout)
        await page.locator(params.selector).first.press_sequentially(params.text)

    await with_timeout(do_type, timeout, f"Element {params.selector} not found or not typeable")
    return success_response({"selector": params.selector, "length": len(params.text)}, f"Typed into {params.selector}")


async def get_content(params: GetContentParams, state: ServerState) -> ToolResult:
    page = await state.browser.page()
    return success_response(await page.content())


# ─────────────────────────────────────────────────────────────────────────────
# Descriptors
# ─────────────────────────────────────────────────────────────────────────────

_ACTION = ToolMetadata(category=ToolCategory.BROWSER)

DESCRIPTORS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name=ToolName.BROWSER_NAVIGATE,
        description="Navigate the browser to a URL and wait for the network to settle",
        params_schema=NavigateParams,
        handler=navigate,
        metadata=_ACTION,
    ),
    ToolDescriptor(
        name=ToolName.BROWSER_SCREENSHOT,
        description="Take a screenshot of the current page and save it to a file",
        params_schema=ScreenshotParams,
        handler=screenshot,
        metadata=_ACTION,
    ),
    ToolDescriptor(
        name=ToolName.BROWSER_CLICK,
        description="Click the element matching a CSS selector",
        params_schema=ClickParams,
        handler=click,
        metadata=_ACTION,
    ),
    ToolDescriptor(
        name=ToolName.BROWSER_TYPE,
        description="Type text into the element matching a CSS selector",
        params_schema=TypeParams,
        handler=type_text,
        metadata=_ACTION,
    ),
    ToolDescriptor(
        name=ToolName.BROWSER_GET_CONTENT,
        description="Get the HTML content of the current page",
        params_schema=GetContentParams,
        handler=get_content,
        metadata=ToolMetadata(category=ToolCategory.BROWSER, read_only=True, cacheable=False),
    ),
)

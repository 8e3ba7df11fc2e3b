"""
Shared browser coordinator.

One Playwright Chromium instance serves every browser-rendered calendar.
The coordinator owns it explicitly and is injected into the adapters that
need it:

- run() serializes callers through an asyncio.Lock (FIFO wake-up order), so
  at most one navigation is in flight system-wide
- the browser is launched lazily on first use and reused afterwards
- a background watch task closes it after a fixed idle period
- closed-browser and timeout errors discard the handle so the next caller
  launches a fresh instance instead of retrying a dead one
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from playwright.async_api import Browser
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from econcal.ingestion.errors import BrowserUnavailableError, FetchError, SourceStructureError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Low-memory Chromium flags for long-running servers
CHROMIUM_LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--disable-component-extensions-with-background-pages",
    "--disable-features=TranslateUI,BlinkGenPropertyTrees",
    "--disable-ipc-flooding-protection",
    "--disable-renderer-backgrounding",
    "--metrics-recording-only",
)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

_CLOSED_MARKERS = (
    "target page, context or browser has been closed",
    "browser has been closed",
)


def is_browser_closed_or_timeout(error: BaseException) -> bool:
    """Whether an error means the browser handle is dead or the fetch timed out."""
    if isinstance(error, (PlaywrightTimeoutError, asyncio.TimeoutError, TimeoutError)):
        return True
    message = str(error).lower()
    if any(marker in message for marker in _CLOSED_MARKERS):
        return True
    return "timeout" in message and "exceeded" in message


@dataclass
class BrowserOptions:
    """Launch, context and lifecycle settings of the shared browser."""

    headless: bool = True
    launch_args: Sequence[str] = CHROMIUM_LAUNCH_ARGS
    startup_timeout_s: float = 45.0
    idle_close_s: float = 30 * 60
    idle_check_s: float = 5 * 60

    # context behavior
    user_agent: str = DEFAULT_USER_AGENT
    locale: str = "en-US"
    viewport: dict[str, int] = field(default_factory=lambda: {"width": 1280, "height": 720})
    extra_headers: dict[str, str] = field(
        default_factory=lambda: {"Accept-Language": "en-US,en;q=0.9"}
    )


Launcher = Callable[[BrowserOptions], Awaitable[tuple[Any, Browser]]]


async def launch_chromium(options: BrowserOptions) -> tuple[Any, Browser]:
    """Start Playwright and launch Chromium; returns (playwright, browser)."""
    pw = await async_playwright().start()
    try:
        browser = await pw.chromium.launch(
            headless=options.headless,
            args=list(options.launch_args),
        )
    except Exception as e:
        await pw.stop()
        if "executable doesn't exist" in str(e) or "not installed" in str(e).lower():
            raise RuntimeError(
                "Chromium binaries are missing. Run: playwright install chromium"
            ) from e
        raise
    return pw, browser


class BrowserCoordinator:
    """
    Explicit owner of the single shared browser.

    Args:
        options: BrowserOptions (defaults are production values)
        launcher: Coroutine creating (playwright, browser); injectable for tests
        clock: Monotonic clock used for idle tracking
    """

    def __init__(
        self,
        options: BrowserOptions | None = None,
        *,
        launcher: Launcher = launch_chromium,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.options = options or BrowserOptions()
        self._launcher = launcher
        self._clock = clock
        self._lock = asyncio.Lock()

        self._pw: Any = None
        self._browser: Browser | None = None
        self._last_used = 0.0
        self._watch_task: asyncio.Task | None = None

    # -------------------------
    # Lifecycle
    # -------------------------

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    async def acquire(self) -> Browser:
        """
        Return the live browser, launching it on first use.

        Raises:
            BrowserUnavailableError: If the launch fails or exceeds the startup timeout
        """
        if self._browser is not None:
            if self._browser.is_connected():
                self._last_used = self._clock()
                return self._browser
            logger.warning("Shared browser disconnected, relaunching")
            await self._discard()

        logger.info("Launching shared browser")
        try:
            self._pw, self._browser = await asyncio.wait_for(
                self._launcher(self.options),
                timeout=self.options.startup_timeout_s,
            )
        except asyncio.TimeoutError as e:
            await self._discard()
            raise BrowserUnavailableError(
                f"Browser startup exceeded {self.options.startup_timeout_s}s"
            ) from e
        except Exception as e:
            await self._discard()
            raise BrowserUnavailableError(f"Browser launch failed: {e}") from e

        self._last_used = self._clock()
        self._ensure_watch_task()
        return self._browser

    async def run(self, fn: Callable[[Browser], Awaitable[T]]) -> T:
        """
        Run one browser operation under the shared FIFO lock.

        Args:
            fn: Coroutine function receiving the live browser

        Raises:
            BrowserUnavailableError: Browser closed underneath or operation timed out
            FetchError: Any other Playwright failure (network errors, failed navigation)
        """
        async with self._lock:
            browser = await self.acquire()
            try:
                return await fn(browser)
            except FetchError:
                raise
            except Exception as e:
                if is_browser_closed_or_timeout(e):
                    logger.warning(f"Browser unavailable, discarding handle: {e}")
                    await self._discard()
                    raise BrowserUnavailableError(str(e)) from e
                if isinstance(e, PlaywrightError):
                    raise FetchError(f"Browser fetch failed: {e}") from e
                raise
            finally:
                self._last_used = self._clock()

    async def close_if_idle(self) -> bool:
        """Close the browser when unused for longer than the idle period."""
        if self._browser is None or self.is_busy:
            return False
        idle_for = self._clock() - self._last_used
        if idle_for <= self.options.idle_close_s:
            return False
        logger.info(f"Closing shared browser after {idle_for:.0f}s idle")
        await self._discard()
        return True

    async def close(self) -> None:
        """Stop the watch task and tear the browser down."""
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None
        await self._discard()

    async def __aenter__(self) -> "BrowserCoordinator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_watch_task(self) -> None:
        if self._watch_task is None or self._watch_task.done():
            self._watch_task = asyncio.create_task(self._watch_idle())

    async def _watch_idle(self) -> None:
        while True:
            await asyncio.sleep(self.options.idle_check_s)
            await self.close_if_idle()

    async def _discard(self) -> None:
        browser, pw = self._browser, self._pw
        self._browser = None
        self._pw = None
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.debug(f"Ignoring error while closing browser: {e}")
        if pw is not None:
            try:
                await pw.stop()
            except PlaywrightError as e:
                logger.debug(f"Ignoring error while stopping playwright: {e}")

    # -------------------------
    # Page rendering
    # -------------------------

    async def fetch_html(
        self,
        url: str,
        *,
        wait_for: str | None = None,
        require_selector: bool = False,
        nav_timeout_s: float = 30.0,
        selector_timeout_s: float = 10.0,
        timezone_id: str | None = None,
        block_resources: Sequence[str] = (),
        settle_s: float = 0.0,
    ) -> str:
        """
        Render a page in a fresh context and return its HTML.

        Args:
            url: Page to render
            wait_for: CSS selector signalling that data has rendered
            require_selector: Missing selector is a structure failure instead of a warning
            nav_timeout_s: Navigation timeout
            selector_timeout_s: Wait-for-selector timeout
            timezone_id: Browser context zone (pins server-rendered times)
            block_resources: Resource types to abort ("image", "stylesheet", ...)
            settle_s: Extra delay after rendering for late scripts

        Raises:
            SourceStructureError: require_selector is set and the selector never appeared
            BrowserUnavailableError: Browser closed underneath or navigation timed out
            FetchError: Navigation failed for any other reason (DNS, refused connection)
        """

        async def _render(browser: Browser) -> str:
            context_kwargs: dict[str, Any] = {
                "user_agent": self.options.user_agent,
                "viewport": self.options.viewport,
                "locale": self.options.locale,
                "extra_http_headers": self.options.extra_headers,
            }
            if timezone_id:
                context_kwargs["timezone_id"] = timezone_id

            context = await browser.new_context(**context_kwargs)
            try:
                page = await context.new_page()
                if block_resources:
                    blocked = set(block_resources)

                    async def _route(route):
                        if route.request.resource_type in blocked:
                            await route.abort()
                        else:
                            await route.continue_()

                    await page.route("**/*", _route)

                logger.debug(f"Navigating to {url}")
                await page.goto(url, wait_until="domcontentloaded", timeout=nav_timeout_s * 1000)

                if wait_for:
                    try:
                        await page.wait_for_selector(wait_for, timeout=selector_timeout_s * 1000)
                    except PlaywrightTimeoutError as e:
                        if require_selector:
                            raise SourceStructureError(
                                f"Selector '{wait_for}' not found on {url}"
                            ) from e
                        logger.warning(f"Selector '{wait_for}' not found on {url}, using partial HTML")

                if settle_s:
                    await asyncio.sleep(settle_s)
                return await page.content()
            finally:
                try:
                    await context.close()
                except PlaywrightError as e:
                    logger.debug(f"Ignoring error while closing context: {e}")

        return await self.run(_render)

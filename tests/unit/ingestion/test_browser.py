"""
Unit tests for the shared browser coordinator.

Playwright is never started: a fake launcher hands out mocked browsers.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from econcal.ingestion.browser import (
    BrowserCoordinator,
    BrowserOptions,
    is_browser_closed_or_timeout,
)
from econcal.ingestion.errors import BrowserUnavailableError, FetchError, SourceStructureError

# =============================================================================
# FIXTURES
# =============================================================================


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


def make_browser(html="<html>ok</html>"):
    """Create a mocked Playwright browser with one context and page."""
    page = MagicMock()
    page.goto = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.route = AsyncMock()
    page.content = AsyncMock(return_value=html)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.is_connected.return_value = True
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    return browser, context, page


def make_launcher(*browsers):
    """Create a launcher handing out the given browsers in order."""
    pw = MagicMock()
    pw.stop = AsyncMock()
    return AsyncMock(side_effect=[(pw, browser) for browser in browsers])


@pytest.fixture
def clock():
    """Create a fake clock."""
    return FakeClock()


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestIsBrowserClosedOrTimeout:
    """Tests for is_browser_closed_or_timeout."""

    def test_timeouts(self):
        """Should recognize timeout errors."""
        assert is_browser_closed_or_timeout(PlaywrightTimeoutError("Timeout 30000ms exceeded.")) is True
        assert is_browser_closed_or_timeout(asyncio.TimeoutError()) is True

    def test_closed_messages(self):
        """Should recognize closed-browser messages."""
        error = Exception("Target page, context or browser has been closed")
        assert is_browser_closed_or_timeout(error) is True

    def test_other_errors(self):
        """Should not flag unrelated errors."""
        assert is_browser_closed_or_timeout(ValueError("bad selector")) is False


class TestLifecycle:
    """Tests for acquire, idle close and close."""

    def test_lazy_launch_and_reuse(self, clock):
        """Should launch once and reuse the live browser."""
        browser, _, _ = make_browser()
        launcher = make_launcher(browser)
        coordinator = BrowserCoordinator(launcher=launcher, clock=clock)

        async def run():
            assert coordinator.is_running is False
            first = await coordinator.acquire()
            second = await coordinator.acquire()
            await coordinator.close()
            return first, second

        first, second = asyncio.run(run())
        assert first is second is browser
        assert launcher.await_count == 1

    def test_relaunch_when_disconnected(self, clock):
        """Should replace a disconnected browser."""
        dead, _, _ = make_browser()
        fresh, _, _ = make_browser()
        coordinator = BrowserCoordinator(launcher=make_launcher(dead, fresh), clock=clock)

        async def run():
            await coordinator.acquire()
            dead.is_connected.return_value = False
            result = await coordinator.acquire()
            await coordinator.close()
            return result

        assert asyncio.run(run()) is fresh
        dead.close.assert_awaited()

    def test_startup_timeout(self, clock):
        """Should give up after the startup timeout."""

        async def slow_launcher(options):
            await asyncio.sleep(5)

        coordinator = BrowserCoordinator(
            BrowserOptions(startup_timeout_s=0.01), launcher=slow_launcher, clock=clock
        )
        with pytest.raises(BrowserUnavailableError):
            asyncio.run(coordinator.acquire())
        assert coordinator.is_running is False

    def test_launch_failure(self, clock):
        """Should map launcher errors onto BrowserUnavailableError."""
        launcher = AsyncMock(side_effect=RuntimeError("Executable doesn't exist at /ms-playwright/chromium"))
        coordinator = BrowserCoordinator(launcher=launcher, clock=clock)
        with pytest.raises(BrowserUnavailableError, match="Executable"):
            asyncio.run(coordinator.acquire())
        assert coordinator.is_running is False

    def test_close_if_idle(self, clock):
        """Should close only after the idle period."""
        browser, _, _ = make_browser()
        coordinator = BrowserCoordinator(
            BrowserOptions(idle_close_s=1800), launcher=make_launcher(browser), clock=clock
        )

        async def run():
            await coordinator.acquire()
            clock.value = 1000
            not_yet = await coordinator.close_if_idle()
            clock.value = 1801
            closed = await coordinator.close_if_idle()
            await coordinator.close()
            return not_yet, closed

        assert asyncio.run(run()) == (False, True)
        assert coordinator.is_running is False
        browser.close.assert_awaited_once()

    def test_close_without_browser(self, clock):
        """Should be a no-op when nothing was launched."""
        coordinator = BrowserCoordinator(launcher=make_launcher(), clock=clock)
        asyncio.run(coordinator.close())
        assert coordinator.is_running is False


class TestRun:
    """Tests for serialized operations."""

    def test_operations_serialized(self, clock):
        """Should never run two operations at once."""
        browser, _, _ = make_browser()
        coordinator = BrowserCoordinator(launcher=make_launcher(browser), clock=clock)
        active = []
        overlaps = []

        async def op(_browser):
            active.append(1)
            if len(active) > 1:
                overlaps.append(True)
            await asyncio.sleep(0.01)
            active.pop()
            return "done"

        async def run():
            results = await asyncio.gather(*(coordinator.run(op) for _ in range(3)))
            await coordinator.close()
            return results

        assert asyncio.run(run()) == ["done", "done", "done"]
        assert overlaps == []

    def test_closed_browser_discarded(self, clock):
        """Should discard the handle and raise BrowserUnavailableError."""
        browser, _, _ = make_browser()
        coordinator = BrowserCoordinator(launcher=make_launcher(browser), clock=clock)

        async def op(_browser):
            raise Exception("Target page, context or browser has been closed")

        async def run():
            try:
                await coordinator.run(op)
            finally:
                await coordinator.close()

        with pytest.raises(BrowserUnavailableError):
            asyncio.run(run())
        assert coordinator.is_running is False

    def test_other_errors_propagate(self, clock):
        """Should keep the browser for unrelated errors."""
        browser, _, _ = make_browser()
        coordinator = BrowserCoordinator(launcher=make_launcher(browser), clock=clock)

        async def op(_browser):
            raise ValueError("parse failure")

        async def run():
            with pytest.raises(ValueError):
                await coordinator.run(op)
            running = coordinator.is_running
            await coordinator.close()
            return running

        assert asyncio.run(run()) is True


class TestFetchHtml:
    """Tests for page rendering."""

    def test_returns_content(self, clock):
        """Should render in a fresh context and close it."""
        browser, context, page = make_browser("<table class='calendar__table'></table>")
        coordinator = BrowserCoordinator(launcher=make_launcher(browser), clock=clock)

        async def run():
            html = await coordinator.fetch_html(
                "https://example.com/calendar",
                wait_for="table",
                timezone_id="GMT",
                block_resources=["image"],
            )
            await coordinator.close()
            return html

        assert "calendar__table" in asyncio.run(run())
        assert browser.new_context.call_args.kwargs["timezone_id"] == "GMT"
        page.route.assert_awaited_once()
        context.close.assert_awaited_once()

    def test_required_selector_missing(self, clock):
        """Should raise a structure error when the selector never appears."""
        browser, context, page = make_browser()
        page.wait_for_selector = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 10000ms exceeded."))
        coordinator = BrowserCoordinator(launcher=make_launcher(browser), clock=clock)

        async def run():
            try:
                return await coordinator.fetch_html("https://example.com", wait_for="table", require_selector=True)
            finally:
                await coordinator.close()

        with pytest.raises(SourceStructureError):
            asyncio.run(run())
        context.close.assert_awaited_once()

    def test_optional_selector_missing(self, clock):
        """Should return partial HTML when the selector is optional."""
        browser, _, page = make_browser("<html>partial</html>")
        page.wait_for_selector = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 10000ms exceeded."))
        coordinator = BrowserCoordinator(launcher=make_launcher(browser), clock=clock)

        async def run():
            html = await coordinator.fetch_html("https://example.com", wait_for="table")
            await coordinator.close()
            return html

        assert asyncio.run(run()) == "<html>partial</html>"

    def test_navigation_timeout(self, clock):
        """Should map navigation timeouts onto BrowserUnavailableError."""
        browser, _, page = make_browser()
        page.goto = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 30000ms exceeded."))
        coordinator = BrowserCoordinator(launcher=make_launcher(browser), clock=clock)

        async def run():
            try:
                return await coordinator.fetch_html("https://example.com")
            finally:
                await coordinator.close()

        with pytest.raises(BrowserUnavailableError):
            asyncio.run(run())

    def test_navigation_error(self, clock):
        """Should map network failures onto FetchError and keep the browser."""
        browser, context, page = make_browser()
        page.goto = AsyncMock(
            side_effect=PlaywrightError("net::ERR_CONNECTION_REFUSED at https://example.com/")
        )
        coordinator = BrowserCoordinator(launcher=make_launcher(browser), clock=clock)

        async def run():
            with pytest.raises(FetchError) as exc_info:
                await coordinator.fetch_html("https://example.com/")
            running = coordinator.is_running
            await coordinator.close()
            return exc_info.value, running

        error, running = asyncio.run(run())
        assert not isinstance(error, BrowserUnavailableError)
        assert "ERR_CONNECTION_REFUSED" in str(error)
        assert running is True
        context.close.assert_awaited_once()

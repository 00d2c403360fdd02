"""Browser tool surface — executes validated tool calls against the shared Playwright page."""

from __future__ import annotations

import asyncio
import logging

from playwright.async_api import Page

from action_builder.errors import BrowserCrashedError
from action_builder.models.config import RecordingConfig
from action_builder.models.session import ToolResult
from action_builder.url_utils import url_matches_pattern

from .accumulator import CapabilityAccumulator
from .element_extractor import observe_elements, rank_elements
from .tools import (
    GoBackCall,
    NavigateCall,
    ObservePageCall,
    RegisterElementCall,
    ScrollCall,
    ScrollToBottomCall,
    SetPageContextCall,
    ToolInvocation,
    WaitCall,
)

logger = logging.getLogger(__name__)

SCROLL_SETTLE_MS = 800


class BrowserToolSurface:
    """The fixed set of operations the model may invoke on one browser page.

    ``execute`` never raises for ordinary failures; it returns a failure
    ``ToolResult`` instead. Only loss of the page itself is raised, as
    ``BrowserCrashedError``.
    """

    def __init__(self, page: Page, accumulator: CapabilityAccumulator, config: RecordingConfig):
        self.page = page
        self.accumulator = accumulator
        self.config = config

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        timeout = self.config.tool_timeout_seconds
        try:
            return await asyncio.wait_for(self._dispatch(invocation), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Tool %s timed out after %.0fs", invocation.tool, timeout)
            self._raise_if_page_lost(None)
            return ToolResult.fail(f"{invocation.tool} timed out after {timeout:.0f}s")
        except BrowserCrashedError:
            raise
        except Exception as e:
            self._raise_if_page_lost(e)
            logger.warning("Tool %s failed: %s", invocation.tool, e)
            return ToolResult.fail(str(e) or type(e).__name__)

    def _raise_if_page_lost(self, cause: Exception | None) -> None:
        if self.page.is_closed():
            raise BrowserCrashedError("Browser page was closed during the session") from cause

    async def _dispatch(self, invocation: ToolInvocation) -> ToolResult:
        match invocation:
            case NavigateCall(url=url):
                return await self._navigate(url)
            case ScrollToBottomCall(max_scrolls=max_scrolls):
                return await self._scroll_to_bottom(max_scrolls)
            case ObservePageCall(focus=focus, module=module):
                return await self._observe(focus, module)
            case RegisterElementCall():
                return await self._register_element(invocation)
            case SetPageContextCall():
                return await self._set_page_context(invocation)
            case GoBackCall():
                return await self._go_back()
            case WaitCall(ms=ms):
                await self.page.wait_for_timeout(ms)
                return ToolResult.ok(waited_ms=ms)
            case ScrollCall(direction=direction, amount=amount):
                return await self._scroll(direction, amount)
            case _:
                return ToolResult.fail(f"Unsupported tool call: {invocation!r}")

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def _navigate(self, url: str) -> ToolResult:
        logger.info("Navigating to %s", url)
        response = await self.page.goto(
            url, wait_until="domcontentloaded", timeout=self.config.navigation_timeout_ms,
        )
        try:
            await self.page.wait_for_load_state("networkidle", timeout=10000)
        except Exception:
            logger.debug("Network idle timeout, continuing")

        status = response.status if response is not None else None
        title = await self.page.title()
        current = self.page.url
        if status is not None and status >= 400:
            return ToolResult.fail(f"HTTP {status} for {current}", url=current, title=title, status=status)
        return ToolResult.ok(url=current, title=title, status=status, message=f"Navigated to {current}")

    async def _go_back(self) -> ToolResult:
        before = self.page.url
        response = await self.page.go_back(
            wait_until="domcontentloaded", timeout=self.config.navigation_timeout_ms,
        )
        after = self.page.url
        if response is None and after == before:
            return ToolResult.fail("No previous page in history", url=after)
        logger.info("Went back from %s to %s", before, after)
        return ToolResult.ok(url=after, title=await self.page.title())

    # ------------------------------------------------------------------
    # Scrolling
    # ------------------------------------------------------------------

    async def _scroll_to_bottom(self, max_scrolls: int | None) -> ToolResult:
        if not self.config.auto_scroll:
            return ToolResult.ok(skipped=True, message="Auto-scroll is disabled for this session")

        limit = max_scrolls or self.config.max_scrolls
        last_height = await self.page.evaluate("document.body.scrollHeight")
        scrolls = 0
        for _ in range(limit):
            await self.page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
            scrolls += 1
            await self.page.wait_for_timeout(SCROLL_SETTLE_MS)
            height = await self.page.evaluate("document.body.scrollHeight")
            if height == last_height:
                break
            last_height = height
        await self.page.evaluate("window.scrollTo(0, 0)")
        logger.info("Scrolled to bottom %d time(s), page height %s", scrolls, last_height)
        return ToolResult.ok(scrolls=scrolls, page_height=last_height)

    async def _scroll(self, direction: str, amount: int) -> ToolResult:
        delta = -abs(amount) if direction == "up" else abs(amount)
        position = await self.page.evaluate(
            "(dy) => { window.scrollBy(0, dy); return window.scrollY; }", delta,
        )
        return ToolResult.ok(direction=direction, amount=abs(amount), scroll_y=position)

    # ------------------------------------------------------------------
    # Observation and recording
    # ------------------------------------------------------------------

    async def _observe(self, focus: str | None, module: str | None) -> ToolResult:
        found = await observe_elements(self.page)
        selected = rank_elements(found, module=module, focus=focus, limit=self.config.observe_limit)
        return ToolResult.ok(
            url=self.page.url,
            focus=focus or "all",
            module=module or "all",
            total_found=len(found),
            returned=len(selected),
            elements=[e.model_dump() for e in selected],
        )

    async def _register_element(self, call: RegisterElementCall) -> ToolResult:
        current = self.page.url
        pattern = None if call.is_global else self.accumulator.active_url_pattern()
        if not url_matches_pattern(current, pattern):
            return ToolResult.fail(
                f"Current page {current} does not match target pattern '{pattern}'. "
                "Call go_back to return to the target page before registering elements.",
                url=current,
            )
        scope, element = self.accumulator.register_element(call, url=current)
        return ToolResult.ok(
            element_id=element.element_id,
            module=element.module.value,
            scope=scope,
        )

    async def _set_page_context(self, call: SetPageContextCall) -> ToolResult:
        page = self.accumulator.set_page_context(call, url=self.page.url)
        return ToolResult.ok(
            page_type=page.page_type,
            url_pattern=page.url_pattern,
            known_elements=self.accumulator.known_element_count(page.page_type),
        )

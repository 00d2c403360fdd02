"""Tests for the browser tool surface."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from action_builder.errors import BrowserCrashedError
from action_builder.recorder.accumulator import CapabilityAccumulator
from action_builder.recorder.browser_tools import BrowserToolSurface
from action_builder.recorder.tools import parse_tool_call

from conftest import make_mock_page


def _surface(recording_config, page=None, accumulator=None):
    page = page or make_mock_page()
    accumulator = accumulator or CapabilityAccumulator("example.com")
    return BrowserToolSurface(page, accumulator, recording_config)


async def _run(surface, name, args=None):
    return await surface.execute(parse_tool_call(name, args or {}))


class TestNavigation:

    @pytest.mark.asyncio
    async def test_navigate_success(self, recording_config):
        page = make_mock_page("https://example.com/search")
        surface = _surface(recording_config, page)

        result = await _run(surface, "navigate", {"url": "https://example.com/search"})

        assert result.success
        assert result.data["status"] == 200
        assert result.data["title"] == "Example Domain"
        page.goto.assert_awaited_once()
        assert page.goto.call_args.args[0] == "https://example.com/search"

    @pytest.mark.asyncio
    async def test_navigate_http_error(self, recording_config):
        page = make_mock_page("https://example.com/missing")
        page.goto = AsyncMock(return_value=Mock(status=404))
        result = await _run(_surface(recording_config, page), "navigate", {"url": "https://example.com/missing"})
        assert not result.success
        assert "HTTP 404" in result.error
        assert result.data["status"] == 404

    @pytest.mark.asyncio
    async def test_navigate_exception_becomes_failure(self, recording_config):
        page = make_mock_page()
        page.goto = AsyncMock(side_effect=Exception("net::ERR_NAME_NOT_RESOLVED"))
        result = await _run(_surface(recording_config, page), "navigate", {"url": "https://nowhere.invalid"})
        assert not result.success
        assert "ERR_NAME_NOT_RESOLVED" in result.error

    @pytest.mark.asyncio
    async def test_go_back_without_history(self, recording_config):
        page = make_mock_page()
        page.go_back = AsyncMock(return_value=None)
        result = await _run(_surface(recording_config, page), "go_back")
        assert not result.success
        assert "No previous page" in result.error

    @pytest.mark.asyncio
    async def test_go_back(self, recording_config):
        page = make_mock_page("https://example.com/rooms/1")

        async def go_back(**kwargs):
            page.url = "https://example.com/search"
            return Mock(status=200)

        page.go_back = AsyncMock(side_effect=go_back)
        result = await _run(_surface(recording_config, page), "go_back")
        assert result.success
        assert result.data["url"] == "https://example.com/search"


class TestFailureHandling:

    @pytest.mark.asyncio
    async def test_timeout_returns_failure(self, recording_config):
        recording_config.tool_timeout_seconds = 0.05
        page = make_mock_page()

        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        page.wait_for_timeout = AsyncMock(side_effect=hang)
        result = await _run(_surface(recording_config, page), "wait", {"ms": 100})
        assert not result.success
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_closed_page_raises(self, recording_config):
        page = make_mock_page()
        page.goto = AsyncMock(side_effect=Exception("Target page, context or browser has been closed"))
        page.is_closed = Mock(return_value=True)
        with pytest.raises(BrowserCrashedError):
            await _run(_surface(recording_config, page), "navigate", {"url": "https://example.com"})

    @pytest.mark.asyncio
    async def test_observe_failure_is_reported(self, recording_config):
        page = make_mock_page()
        page.evaluate = AsyncMock(side_effect=Exception("Execution context was destroyed"))
        result = await _run(_surface(recording_config, page), "observe_page")
        assert not result.success
        assert "Execution context" in result.error


class TestScrolling:

    @pytest.mark.asyncio
    async def test_wait(self, recording_config):
        page = make_mock_page()
        result = await _run(_surface(recording_config, page), "wait", {"ms": 250})
        assert result.success
        page.wait_for_timeout.assert_awaited_once_with(250)

    @pytest.mark.asyncio
    async def test_scroll_up_uses_negative_delta(self, recording_config):
        page = make_mock_page()
        page.evaluate = AsyncMock(return_value=0)
        result = await _run(_surface(recording_config, page), "scroll", {"direction": "up", "amount": 300})
        assert result.success
        assert page.evaluate.call_args.args[1] == -300
        assert result.data["scroll_y"] == 0

    @pytest.mark.asyncio
    async def test_scroll_to_bottom_stops_when_height_settles(self, recording_config):
        page = make_mock_page()
        heights = iter([1000, 2000, 2000])

        async def evaluate(script, *args):
            if script == "document.body.scrollHeight":
                return next(heights)
            return None

        page.evaluate = AsyncMock(side_effect=evaluate)
        result = await _run(_surface(recording_config, page), "scroll_to_bottom")
        assert result.success
        assert result.data["scrolls"] == 2
        assert result.data["page_height"] == 2000
        assert page.evaluate.call_args.args[0] == "window.scrollTo(0, 0)"

    @pytest.mark.asyncio
    async def test_scroll_to_bottom_respects_limit(self, recording_config):
        page = make_mock_page()
        counter = iter(range(100))

        async def evaluate(script, *args):
            if script == "document.body.scrollHeight":
                return next(counter) * 500
            return None

        page.evaluate = AsyncMock(side_effect=evaluate)
        result = await _run(_surface(recording_config, page), "scroll_to_bottom", {"max_scrolls": 3})
        assert result.data["scrolls"] == 3

    @pytest.mark.asyncio
    async def test_scroll_to_bottom_skipped_without_auto_scroll(self, recording_config):
        recording_config.auto_scroll = False
        page = make_mock_page()
        result = await _run(_surface(recording_config, page), "scroll_to_bottom")
        assert result.success
        assert result.data["skipped"] is True
        page.evaluate.assert_not_awaited()


class TestRecording:

    @pytest.mark.asyncio
    async def test_observe_page_filters_by_module(self, recording_config):
        page = make_mock_page()
        page.evaluate = AsyncMock(return_value=[
            {"tag": "a", "element_type": "link", "text": "Home", "module": "header",
             "selectors": [{"type": "css", "value": "a.home"}]},
            {"tag": "button", "element_type": "button", "text": "Search", "module": "main",
             "selectors": [{"type": "css", "value": "button.search"}]},
        ])
        result = await _run(_surface(recording_config, page), "observe_page", {"module": "main"})
        assert result.success
        assert result.data["total_found"] == 2
        assert result.data["returned"] == 1
        assert result.data["elements"][0]["text"] == "Search"

    @pytest.mark.asyncio
    async def test_set_page_context_then_register(self, recording_config):
        accumulator = CapabilityAccumulator("example.com")
        surface = _surface(recording_config, accumulator=accumulator)

        ctx = await _run(surface, "set_page_context", {"page_type": "example_main"})
        assert ctx.success
        assert ctx.data["known_elements"] == 0

        reg = await _run(surface, "register_element", {
            "element_id": "header_logo", "module": "header", "selector": "a.logo",
            "allow_methods": ["click"],
        })
        assert reg.success
        assert reg.data == {"element_id": "header_logo", "module": "header", "scope": "example_main"}
        assert "header_logo" in accumulator.snapshot().pages["example_main"].elements

    @pytest.mark.asyncio
    async def test_set_page_context_reports_stored_elements(self, recording_config, site_capability):
        accumulator = CapabilityAccumulator("example.com", known=site_capability)
        surface = _surface(recording_config, accumulator=accumulator)

        ctx = await _run(surface, "set_page_context", {"page_type": "example_main"})

        assert ctx.success
        assert ctx.data["known_elements"] == 2
        assert accumulator.snapshot().pages["example_main"].elements == {}

    @pytest.mark.asyncio
    async def test_register_off_pattern_is_rejected(self, recording_config):
        page = make_mock_page("https://example.com/rooms/42")
        accumulator = CapabilityAccumulator("example.com")
        surface = _surface(recording_config, page, accumulator)

        await _run(surface, "set_page_context", {"page_type": "search", "url_pattern": "^/search"})
        result = await _run(surface, "register_element", {"element_id": "room_title"})

        assert not result.success
        assert "go_back" in result.error
        assert accumulator.snapshot().pages["search"].elements == {}

    @pytest.mark.asyncio
    async def test_global_register_ignores_pattern(self, recording_config):
        page = make_mock_page("https://example.com/rooms/42")
        accumulator = CapabilityAccumulator("example.com")
        surface = _surface(recording_config, page, accumulator)

        await _run(surface, "set_page_context", {"page_type": "search", "url_pattern": "^/search"})
        result = await _run(surface, "register_element", {"element_id": "nav_home", "is_global": True})

        assert result.success
        assert result.data["scope"] == "global"

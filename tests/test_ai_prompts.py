"""Tests for AI prompts."""

from action_builder.ai.prompts.recording import RECORDING_SYSTEM_PROMPT, build_recording_prompt
from action_builder.recorder.tools import TOOL_MODELS


class TestRecordingSystemPrompt:
    """Tests for the recording system prompt."""

    def test_mentions_every_tool(self):
        for name in TOOL_MODELS:
            assert name in RECORDING_SYSTEM_PROMPT

    def test_lists_modules(self):
        for module in ("header", "footer", "sidebar", "navibar", "main", "modal", "breadcrumb", "tab"):
            assert module in RECORDING_SYSTEM_PROMPT

    def test_explains_how_to_finish(self):
        assert "no tool calls" in RECORDING_SYSTEM_PROMPT


class TestBuildRecordingPrompt:
    """Tests for build_recording_prompt."""

    def test_basic(self):
        prompt = build_recording_prompt(
            url="https://www.airbnb.com/",
            scenario="Airbnb homepage with search form",
            page_type="airbnb_com_main",
        )
        assert "https://www.airbnb.com/" in prompt
        assert "Airbnb homepage with search form" in prompt
        assert 'page_type: "airbnb_com_main"' in prompt
        assert "scroll_to_bottom" in prompt
        assert "Target URL pattern" not in prompt

    def test_without_auto_scroll(self):
        prompt = build_recording_prompt("https://example.com", "Home", "example_com_main", auto_scroll=False)
        assert "scroll_to_bottom" not in prompt
        assert "Skip scrolling" in prompt

    def test_with_url_pattern(self):
        prompt = build_recording_prompt(
            "https://example.com/search", "Search", "search", url_pattern="^/search",
        )
        assert "`^/search`" in prompt

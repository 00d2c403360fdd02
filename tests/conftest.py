"""Pytest configuration and shared fixtures."""

import copy
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from action_builder.ai.client import ModelTurn, ToolCallRequest
from action_builder.models.capability import (
    ElementCapability,
    ElementSelector,
    PageCapability,
    PageModule,
    SiteCapability,
)
from action_builder.models.config import RecordingConfig
from action_builder.recorder.accumulator import CapabilityAccumulator


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def recording_config(tmp_path: Path) -> RecordingConfig:
    """Create a test recording configuration writing under tmp_path."""
    return RecordingConfig(
        target_url="https://www.example.com/",
        scenario="Example homepage with search form",
        headless=True,
        output_dir=str(tmp_path / "output"),
        max_turns=5,
        tool_timeout_seconds=5.0,
    )


# ============================================================================
# Capability Fixtures
# ============================================================================


@pytest.fixture
def header_logo() -> ElementCapability:
    return ElementCapability(
        element_id="header_logo",
        description="Site logo linking to the homepage",
        element_type="link",
        allow_methods=["click"],
        module=PageModule.HEADER,
        selectors=[ElementSelector(type="css", value="a.logo")],
    )


@pytest.fixture
def site_capability(header_logo: ElementCapability) -> SiteCapability:
    """A stored document with one page and two elements."""
    page = PageCapability(
        page_type="example_main",
        url="https://example.com/",
        elements={
            "header_logo": header_logo,
            "main_search_button": ElementCapability(
                element_id="main_search_button",
                description="Submits the search form",
                element_type="button",
                allow_methods=["click"],
                module=PageModule.MAIN,
                selectors=[ElementSelector(type="css", value="button[type='submit']")],
            ),
        },
    )
    return SiteCapability(
        domain="example.com",
        site_name="example.com",
        pages={"example_main": page},
        recording_count=1,
    )


@pytest.fixture
def accumulator() -> CapabilityAccumulator:
    return CapabilityAccumulator("https://www.example.com/")


# ============================================================================
# Browser Fixtures
# ============================================================================


def make_mock_page(url: str = "https://example.com/") -> AsyncMock:
    """AsyncMock page whose synchronous Playwright members are plain Mocks."""
    page = AsyncMock()
    page.url = url
    page.is_closed = Mock(return_value=False)
    page.title = AsyncMock(return_value="Example Domain")
    page.goto = AsyncMock(return_value=Mock(status=200))
    page.evaluate = AsyncMock(return_value=[])
    return page


@pytest.fixture
def mock_page() -> AsyncMock:
    return make_mock_page()


# ============================================================================
# Model Fixtures
# ============================================================================


def tool_turn(*calls: tuple[str, dict[str, Any]], text: str = "", tokens: tuple[int, int] = (100, 20)) -> ModelTurn:
    """Build a ModelTurn requesting the given (name, arguments) tool calls."""
    requests = [
        ToolCallRequest(id=f"toolu_{i}_{name}", name=name, arguments=args)
        for i, (name, args) in enumerate(calls)
    ]
    content: list[dict[str, Any]] = []
    if text:
        content.append({"type": "text", "text": text})
    content.extend(
        {"type": "tool_use", "id": r.id, "name": r.name, "input": r.arguments} for r in requests
    )
    return ModelTurn(
        text=text,
        tool_calls=requests,
        stop_reason="tool_use" if requests else "end_turn",
        input_tokens=tokens[0],
        output_tokens=tokens[1],
        assistant_content=content,
    )


class ScriptedAIClient:
    """Stands in for AIClient, replaying a fixed list of turns."""

    def __init__(self, turns: list[ModelTurn], repeat_last: bool = False):
        self.turns = list(turns)
        self.repeat_last = repeat_last
        self.calls: list[list[dict[str, Any]]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def converse(self, system_prompt, messages, tools, max_tokens=None, temperature=0.2) -> ModelTurn:
        self.calls.append(copy.deepcopy(messages))
        if len(self.turns) > 1 or not self.repeat_last:
            if not self.turns:
                return tool_turn(text="Done.")
            return self.turns.pop(0)
        return self.turns[0]

"""Tool definitions: one tagged pydantic variant per tool the model may call.

The same models validate incoming tool arguments and produce the JSON schemas
sent to the model, so the tool surface is a closed, statically known set.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from action_builder.models.capability import MODULE_NAMES, PageModule

logger = logging.getLogger(__name__)

MAX_WAIT_MS = 10000


class ToolArgumentError(ValueError):
    """The model called a tool that does not exist or with unusable arguments."""


class _ToolCall(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tool_description: ClassVar[str] = ""


class NavigateCall(_ToolCall):
    tool_description: ClassVar[str] = "Navigate the browser to a URL and wait for the page to load."

    tool: Literal["navigate"] = "navigate"
    url: str = Field(description="Absolute URL to load")


class ScrollToBottomCall(_ToolCall):
    tool_description: ClassVar[str] = (
        "Scroll repeatedly to the bottom of the page to trigger lazy-loaded content. "
        "Call this before observing pages that load content on scroll."
    )

    tool: Literal["scroll_to_bottom"] = "scroll_to_bottom"
    max_scrolls: Optional[int] = Field(
        default=None, description="Upper bound on scroll iterations (optional)",
    )


class ObservePageCall(_ToolCall):
    tool_description: ClassVar[str] = (
        "Scan the current page and list visible interactive elements with selector "
        "candidates and the page module each one sits in. Does not record anything."
    )

    tool: Literal["observe_page"] = "observe_page"
    focus: Optional[str] = Field(
        default=None, description="What to look for, e.g. 'search form elements'",
    )
    module: Optional[str] = Field(
        default=None,
        description="Restrict to one page module, or 'all'",
        json_schema_extra={"enum": MODULE_NAMES + ["all"]},
    )

    @field_validator("module", mode="before")
    @classmethod
    def normalize_module(cls, v):
        if v is None:
            return None
        v = str(v).strip().lower()
        if not v or v == "all":
            return None
        return PageModule.coerce(v).value


class RegisterElementCall(_ToolCall):
    tool_description: ClassVar[str] = (
        "Record an interactive element's capability on the current page context. "
        "Registering an existing element_id again updates it. Always set module."
    )

    tool: Literal["register_element"] = "register_element"
    element_id: str = Field(
        min_length=1, description="Stable snake_case id, e.g. header_search_input",
    )
    description: str = Field(default="", description="What the element does")
    element_type: str = Field(
        default="", description="Semantic kind: button, input, link, dropdown, tab, ...",
    )
    allow_methods: list[str] = Field(
        default_factory=list,
        description="Permitted interactions: click, type, select, extract, hover, ...",
    )
    module: str = Field(
        default=PageModule.UNKNOWN.value,
        description="Page region the element belongs to",
        json_schema_extra={"enum": MODULE_NAMES},
    )
    selector: Optional[str] = Field(default=None, description="CSS selector")
    xpath: Optional[str] = Field(default=None, description="XPath locator (optional)")
    text_content: Optional[str] = Field(default=None, description="Visible text (optional)")
    is_global: bool = Field(
        default=False,
        description="True for elements present on every page of the site (e.g. main nav)",
    )

    @field_validator("module", mode="before")
    @classmethod
    def default_module(cls, v):
        return PageModule.coerce(v).value

    @field_validator("allow_methods", mode="before")
    @classmethod
    def listify_methods(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [m.strip() for m in v.split(",") if m.strip()]
        return v


class SetPageContextCall(_ToolCall):
    tool_description: ClassVar[str] = (
        "Set the page type that subsequent register_element calls are recorded under."
    )

    tool: Literal["set_page_context"] = "set_page_context"
    page_type: str = Field(min_length=1, description="Page type id, e.g. airbnb_com_main")
    description: str = Field(default="", description="What this page is for")
    url_pattern: Optional[str] = Field(
        default=None, description="Regex of URLs belonging to this page type (optional)",
    )


class GoBackCall(_ToolCall):
    tool_description: ClassVar[str] = (
        "Go back to the previous page. Use this when an action navigated away by accident."
    )

    tool: Literal["go_back"] = "go_back"


class WaitCall(_ToolCall):
    tool_description: ClassVar[str] = "Wait for content to appear (milliseconds, max 10000)."

    tool: Literal["wait"] = "wait"
    ms: int = Field(default=1000, description="Milliseconds to wait")

    @field_validator("ms", mode="before")
    @classmethod
    def clamp(cls, v):
        try:
            v = int(v)
        except (TypeError, ValueError):
            return 1000
        return max(0, min(v, MAX_WAIT_MS))


class ScrollCall(_ToolCall):
    tool_description: ClassVar[str] = "Scroll the page incrementally."

    tool: Literal["scroll"] = "scroll"
    direction: Literal["up", "down"] = Field(default="down", description="up or down")
    amount: int = Field(default=600, description="Pixels to scroll")

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, v):
        return "up" if str(v).strip().lower() == "up" else "down"


ToolInvocation = Annotated[
    Union[
        NavigateCall,
        ScrollToBottomCall,
        ObservePageCall,
        RegisterElementCall,
        SetPageContextCall,
        GoBackCall,
        WaitCall,
        ScrollCall,
    ],
    Field(discriminator="tool"),
]

TOOL_MODELS: dict[str, type[_ToolCall]] = {
    "navigate": NavigateCall,
    "scroll_to_bottom": ScrollToBottomCall,
    "observe_page": ObservePageCall,
    "register_element": RegisterElementCall,
    "set_page_context": SetPageContextCall,
    "go_back": GoBackCall,
    "wait": WaitCall,
    "scroll": ScrollCall,
}

_adapter: TypeAdapter = TypeAdapter(ToolInvocation)


def parse_tool_call(name: str, arguments: dict[str, Any] | None) -> ToolInvocation:
    """Validate a raw tool call from the model into its tagged variant."""
    if name not in TOOL_MODELS:
        raise ToolArgumentError(
            f"Unknown tool '{name}'. Available tools: {', '.join(TOOL_MODELS)}"
        )
    payload = dict(arguments or {})
    payload["tool"] = name
    try:
        return _adapter.validate_python(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:]) or name}: {err['msg']}"
            for err in e.errors()
        )
        raise ToolArgumentError(f"Invalid arguments for {name}: {problems}") from e


def _input_schema(model: type[_ToolCall]) -> dict[str, Any]:
    schema = model.model_json_schema()
    schema.pop("title", None)
    schema.pop("description", None)
    properties = schema.get("properties", {})
    properties.pop("tool", None)
    for prop in properties.values():
        prop.pop("title", None)
    if "required" in schema:
        schema["required"] = [r for r in schema["required"] if r != "tool"]
        if not schema["required"]:
            del schema["required"]
    return schema


def tool_schemas() -> list[dict[str, Any]]:
    """Tool definitions in the shape the Anthropic Messages API expects."""
    return [
        {
            "name": name,
            "description": model.tool_description,
            "input_schema": _input_schema(model),
        }
        for name, model in TOOL_MODELS.items()
    ]

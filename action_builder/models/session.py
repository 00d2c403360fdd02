"""Session-level data structures: tool results, step events, recording results."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from .capability import SiteCapability


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    TURN_LIMIT_REACHED = "turn_limit_reached"
    FAILED = "failed"


class ToolResult(BaseModel):
    """Structured outcome of one tool call, returned to the model as-is."""
    success: bool
    data: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @classmethod
    def ok(cls, **data: Any) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, **data: Any) -> "ToolResult":
        return cls(success=False, error=error, data=data)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, **self.data}
        if self.error:
            payload["error"] = self.error
        return payload


class StepEvent(BaseModel):
    step: int
    tool_name: str
    tool_args: dict[str, Any] = Field(default_factory=dict)
    success: bool
    duration_ms: int = 0
    error: Optional[str] = None
    timestamp: str = ""


class ObservedElement(BaseModel):
    """An interactive element found by ``observe_page``."""
    tag: str
    element_type: str = ""
    text: str = ""
    module: str = "unknown"
    selectors: list[dict[str, str]] = Field(default_factory=list)
    attributes: dict[str, str] = Field(default_factory=dict)


class TokenUsage(BaseModel):
    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output

    def add(self, input_tokens: int, output_tokens: int) -> None:
        self.input += input_tokens or 0
        self.output += output_tokens or 0


class RecordingResult(BaseModel):
    success: bool
    state: SessionState
    saved_path: Optional[str] = None
    turns: int = 0
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    total_duration_ms: int = 0
    steps: int = 0
    summary: str = ""
    error: Optional[str] = None
    site_capability: Optional[SiteCapability] = None

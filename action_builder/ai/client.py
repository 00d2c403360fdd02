"""Claude API client wrapper for tool-calling recording sessions."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Optional

import anthropic
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Configurable debug directory — set by the orchestrator at startup
_debug_dir: Path | None = None


def set_debug_dir(path: Path) -> None:
    """Set the directory for dumping AI exchanges."""
    global _debug_dir
    _debug_dir = path
    _debug_dir.mkdir(parents=True, exist_ok=True)


def _get_debug_dir() -> Path:
    """Get or create the debug directory."""
    global _debug_dir
    if _debug_dir is None:
        _debug_dir = Path("./output") / "debug"
    _debug_dir.mkdir(parents=True, exist_ok=True)
    return _debug_dir


class ToolCallRequest(BaseModel):
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ModelTurn(BaseModel):
    """One model response: optional text, zero or more tool calls, token usage."""
    text: str = ""
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    stop_reason: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    assistant_content: list[dict[str, Any]] = Field(default_factory=list)


class AIClient:
    """Wrapper around the Anthropic Claude API."""

    def __init__(self, model: str = "claude-opus-4-6", max_tokens: int = 8192):
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Please set it before recording."
            )
        self.client = anthropic.Anthropic(api_key=api_key, timeout=600.0)
        self.model = model
        self.max_tokens = max_tokens
        self._call_count = 0

    @property
    def call_count(self) -> int:
        return self._call_count

    def converse(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        max_tokens: Optional[int] = None,
        temperature: float = 0.2,
    ) -> ModelTurn:
        """Send the running conversation and return the model's next turn."""
        self._call_count += 1
        tokens = max_tokens or self.max_tokens
        logger.info(
            "Calling AI (call #%d, model=%s, %d messages)...",
            self._call_count, self.model, len(messages),
        )

        try:
            call_start = time.time()
            response = self.client.messages.create(
                model=self.model,
                max_tokens=tokens,
                temperature=temperature,
                system=system_prompt,
                messages=messages,
                tools=tools,
            )
            call_duration = time.time() - call_start
        except anthropic.APIError as e:
            logger.error("Claude API error: %s", e)
            self._save_exchange_log(
                call_number=self._call_count,
                system_prompt=system_prompt,
                last_message=messages[-1] if messages else {},
                response_text="",
                error=str(e),
            )
            raise

        turn = self._parse_response(response)
        logger.info(
            "AI response received in %.1fs (%d tool calls, stop=%s)",
            call_duration, len(turn.tool_calls), turn.stop_reason,
        )
        if turn.stop_reason == "max_tokens":
            logger.warning(
                "AI response was truncated at max_tokens (%d). Consider raising ai_max_tokens.",
                tokens,
            )

        self._save_exchange_log(
            call_number=self._call_count,
            system_prompt=system_prompt,
            last_message=messages[-1] if messages else {},
            response_text=json.dumps(turn.assistant_content, indent=2, default=str),
            error=None,
        )
        return turn

    @staticmethod
    def _parse_response(response: Any) -> ModelTurn:
        texts: list[str] = []
        calls: list[ToolCallRequest] = []
        content: list[dict[str, Any]] = []
        for block in response.content:
            if block.type == "text":
                if not block.text:
                    continue
                texts.append(block.text)
                content.append({"type": "text", "text": block.text})
            elif block.type == "tool_use":
                arguments = block.input if isinstance(block.input, dict) else {}
                calls.append(ToolCallRequest(id=block.id, name=block.name, arguments=arguments))
                content.append({
                    "type": "tool_use", "id": block.id, "name": block.name, "input": arguments,
                })

        usage = getattr(response, "usage", None)
        return ModelTurn(
            text="\n".join(t for t in texts if t).strip(),
            tool_calls=calls,
            stop_reason=response.stop_reason,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            assistant_content=content,
        )

    # ------------------------------------------------------------------
    # Debug logging
    # ------------------------------------------------------------------

    @staticmethod
    def _save_exchange_log(
        call_number: int,
        system_prompt: str,
        last_message: dict[str, Any],
        response_text: str,
        error: str | None,
    ) -> None:
        """Save the AI exchange (prompt + latest message + response) to a log file."""
        try:
            debug_dir = _get_debug_dir()
            ts = time.strftime("%Y%m%d_%H%M%S")
            log_file = debug_dir / f"ai_call_{ts}_{call_number:03d}.log"
            message_text = json.dumps(last_message, indent=2, default=str)

            with open(log_file, "w", encoding="utf-8") as f:
                f.write(f"=== AI CALL #{call_number} at {time.strftime('%Y-%m-%d %H:%M:%S')} ===\n\n")
                f.write(f"=== SYSTEM PROMPT ({len(system_prompt)} chars) ===\n")
                f.write(system_prompt)
                f.write(f"\n\n=== LATEST MESSAGE ({len(message_text)} chars) ===\n")
                f.write(message_text)
                f.write(f"\n\n=== RESPONSE ({len(response_text)} chars) ===\n")
                f.write(response_text if response_text else "(empty)")
                if error:
                    f.write(f"\n\n=== ERROR ===\n{error}\n")

            logger.debug("AI exchange logged to %s", log_file)
        except Exception as log_err:
            logger.debug("Failed to save AI exchange log: %s", log_err)

"""Step recording — times every tool call and publishes a StepEvent per call."""

from __future__ import annotations

import json
import logging
import time
from collections import deque
from pathlib import Path
from typing import Any, Awaitable, Callable

from action_builder.models.session import StepEvent, ToolResult

logger = logging.getLogger(__name__)

StepObserver = Callable[[StepEvent], None]


class StepEventChannel:
    """Ordered queue of step events, drained into subscribed observers."""

    def __init__(self) -> None:
        self._pending: deque[StepEvent] = deque()
        self._observers: list[StepObserver] = []

    def subscribe(self, observer: StepObserver) -> None:
        self._observers.append(observer)

    def publish(self, event: StepEvent) -> None:
        self._pending.append(event)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def drain(self) -> int:
        """Deliver pending events in publish order. Returns how many were delivered."""
        delivered = 0
        while self._pending:
            event = self._pending.popleft()
            for observer in self._observers:
                try:
                    observer(event)
                except Exception as e:
                    logger.warning("Step observer failed on step %d: %s", event.step, e)
            delivered += 1
        return delivered


class StepRecorder:
    """Wraps tool execution with timing and outcome capture."""

    def __init__(self, channel: StepEventChannel | None = None):
        self.channel = channel or StepEventChannel()
        self._events: list[StepEvent] = []

    @property
    def events(self) -> list[StepEvent]:
        return list(self._events)

    @property
    def step_count(self) -> int:
        return len(self._events)

    async def record(
        self,
        tool_name: str,
        tool_args: dict[str, Any],
        execute: Callable[[], Awaitable[ToolResult]],
    ) -> ToolResult:
        """Run ``execute`` and publish its event, even if it raises.

        Exceptions propagate unchanged after the event is published.
        """
        start = time.monotonic()
        result: ToolResult | None = None
        error: str | None = None
        try:
            result = await execute()
            return result
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            raise
        finally:
            duration_ms = int((time.monotonic() - start) * 1000)
            event = StepEvent(
                step=len(self._events) + 1,
                tool_name=tool_name,
                tool_args=dict(tool_args),
                success=bool(result and result.success),
                duration_ms=duration_ms,
                error=result.error if result is not None else error,
                timestamp=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            )
            self._events.append(event)
            self.channel.publish(event)
            logger.debug(
                "Step %d: %s %s in %dms",
                event.step, tool_name, "ok" if event.success else "failed", duration_ms,
            )

    def save_audit_trail(self, path: Path) -> None:
        """Write all events as JSON Lines."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            for event in self._events:
                f.write(json.dumps(event.model_dump(mode="json"), default=str) + "\n")
        logger.debug("Saved %d step events to %s", len(self._events), path)

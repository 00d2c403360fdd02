"""Recording orchestrator — drives the tool-calling agent loop and persists the result."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

import anthropic
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from action_builder.ai.client import AIClient, ToolCallRequest, set_debug_dir
from action_builder.ai.prompts.recording import (
    CONTINUE_PROMPT,
    RECORDING_SYSTEM_PROMPT,
    build_recording_prompt,
)
from action_builder.errors import BrowserCrashedError, NotInitializedError, PersistenceError
from action_builder.models.capability import SiteCapability
from action_builder.models.config import RecordingConfig
from action_builder.models.session import (
    RecordingResult,
    SessionState,
    TokenUsage,
    ToolResult,
)
from action_builder.recorder.accumulator import CapabilityAccumulator
from action_builder.recorder.browser_tools import BrowserToolSurface
from action_builder.recorder.step_recorder import StepEventChannel, StepObserver, StepRecorder
from action_builder.recorder.tools import ToolArgumentError, parse_tool_call, tool_schemas
from action_builder.storage.store import CapabilityStore, merge_and_save, open_store
from action_builder.url_utils import default_page_type, domain_slug, normalize_domain
from action_builder.utils.browser_stealth import create_recording_context, launch_browser

logger = logging.getLogger(__name__)


class ActionBuilder:
    """Records a site's interactive capabilities with a model-driven browser session.

    One instance owns one browser page. ``build`` runs a bounded conversation:
    each turn the model proposes tool calls, they run one after another
    against the page, and their results go back as the next message. The
    session ends when the model stops calling tools, when ``max_turns`` is
    used up, or on a fatal browser/API error. Whatever was recorded is merged
    into the stored document in every case.
    """

    def __init__(
        self,
        config: RecordingConfig,
        ai_client: AIClient | None = None,
        store: CapabilityStore | None = None,
        on_step: StepObserver | None = None,
    ):
        self.config = config
        self.output_dir = Path(config.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        set_debug_dir(self.output_dir / "debug")

        self.ai_client = ai_client or AIClient(
            model=config.ai_model, max_tokens=config.ai_max_tokens,
        )
        self.store = store or open_store(config.output_dir, config.database_url)
        self.channel = StepEventChannel()
        if on_step:
            self.channel.subscribe(on_step)

        self.state = SessionState.IDLE
        self.page: Page | None = None
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._accumulator: CapabilityAccumulator | None = None

    async def __aenter__(self) -> "ActionBuilder":
        await self.initialize()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def initialize(self) -> None:
        """Launch the browser and open the session's single page."""
        logger.info("Launching browser (headless=%s)", self.config.headless)
        self._playwright = await async_playwright().start()
        self._browser = await launch_browser(self._playwright, headless=self.config.headless)
        self._context = await create_recording_context(
            self._browser,
            viewport={"width": self.config.viewport.width, "height": self.config.viewport.height},
            user_agent=self.config.user_agent,
        )
        self.page = await self._context.new_page()

    async def close(self) -> None:
        for name, closer in (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.debug("Error closing %s: %s", name, e)
        self.page = None
        self._context = None
        self._browser = None
        self._playwright = None

    def snapshot(self) -> Optional[SiteCapability]:
        """Copy of what the running (or last) session has recorded so far."""
        if self._accumulator is None:
            return None
        return self._accumulator.snapshot()

    async def build(
        self,
        url: str | None = None,
        scenario_id: str | None = None,
        system_prompt: str | None = None,
        user_prompt: str | None = None,
    ) -> RecordingResult:
        """Run one recording session and return its result. Never raises for session errors."""
        if self.page is None:
            raise NotInitializedError("Call initialize() before build()")

        url = url or self.config.target_url
        domain = normalize_domain(url)
        scenario_id = scenario_id or f"{domain_slug(url)}_playbook_{int(time.time() * 1000)}"
        start = time.time()
        self.state = SessionState.RUNNING
        logger.info("=== Recording %s (scenario %s) ===", url, scenario_id)

        accumulator = CapabilityAccumulator(
            domain,
            site_name=self.config.site_name or urlparse(url).hostname or domain,
            description=self.config.scenario,
            known=self._load_stored(domain),
        )
        accumulator.set_default_url_pattern(self.config.target_url_pattern)
        self._accumulator = accumulator
        recorder = StepRecorder(self.channel)
        surface = BrowserToolSurface(self.page, accumulator, self.config)

        system_prompt = system_prompt or RECORDING_SYSTEM_PROMPT
        messages: list[dict[str, Any]] = [{
            "role": "user",
            "content": user_prompt or build_recording_prompt(
                url,
                self.config.scenario,
                page_type=default_page_type(url),
                auto_scroll=self.config.auto_scroll,
                url_pattern=self.config.target_url_pattern,
            ),
        }]
        tools = tool_schemas()
        tokens = TokenUsage()
        turns = 0
        summary = ""
        error: str | None = None

        try:
            while True:
                if turns >= self.config.max_turns:
                    self.state = SessionState.TURN_LIMIT_REACHED
                    logger.warning(
                        "Turn limit reached (%d) before the model finished", self.config.max_turns,
                    )
                    break
                turns += 1
                logger.info("--- Turn %d/%d ---", turns, self.config.max_turns)

                turn = await asyncio.to_thread(
                    self.ai_client.converse, system_prompt, messages, tools,
                )
                tokens.add(turn.input_tokens, turn.output_tokens)
                if turn.text:
                    summary = turn.text

                if not turn.tool_calls:
                    if turn.stop_reason == "max_tokens" and turn.assistant_content:
                        logger.warning("Response cut off at max_tokens with no tool calls; asking to continue")
                        messages.append({"role": "assistant", "content": turn.assistant_content})
                        messages.append({"role": "user", "content": CONTINUE_PROMPT})
                        continue
                    if turn.stop_reason == "max_tokens" or not turn.text:
                        self.state = SessionState.FAILED
                        error = (
                            "Model response was truncated before any output"
                            if turn.stop_reason == "max_tokens"
                            else "Model stopped without tool calls or a summary"
                        )
                        logger.error("%s (turn %d)", error, turns)
                        break
                    self.state = SessionState.COMPLETED
                    logger.info("Model finished after %d turn(s)", turns)
                    break

                messages.append({"role": "assistant", "content": turn.assistant_content})
                tool_results = []
                for call in turn.tool_calls:
                    result = await self._run_tool(call, surface, recorder)
                    tool_results.append({
                        "type": "tool_result",
                        "tool_use_id": call.id,
                        "content": json.dumps(result.to_payload(), default=str),
                        "is_error": not result.success,
                    })
                messages.append({"role": "user", "content": tool_results})

        except BrowserCrashedError as e:
            self.state = SessionState.FAILED
            error = str(e)
            logger.error("Browser lost, ending session: %s", e)
        except anthropic.APIError as e:
            self.state = SessionState.FAILED
            error = f"Model API error: {e}"
            logger.error("Model API failure, ending session: %s", e)
        except Exception as e:
            self.state = SessionState.FAILED
            error = f"{type(e).__name__}: {e}"
            logger.exception("Unexpected error during recording")

        site, saved_path, persist_error = self._persist(accumulator, recorder, scenario_id)
        if persist_error and error is None:
            error = persist_error

        duration_ms = int((time.time() - start) * 1000)
        success = (
            self.state in (SessionState.COMPLETED, SessionState.TURN_LIMIT_REACHED)
            and saved_path is not None
        )
        logger.info(
            "=== Recording %s: state=%s turns=%d steps=%d tokens=%d in %.1fs ===",
            "succeeded" if success else "finished with issues",
            self.state.value, turns, recorder.step_count, tokens.total, duration_ms / 1000,
        )
        return RecordingResult(
            success=success,
            state=self.state,
            saved_path=saved_path,
            turns=turns,
            tokens=tokens,
            total_duration_ms=duration_ms,
            steps=recorder.step_count,
            summary=summary,
            error=error,
            site_capability=site,
        )

    async def _run_tool(
        self, call: ToolCallRequest, surface: BrowserToolSurface, recorder: StepRecorder,
    ) -> ToolResult:
        async def execute() -> ToolResult:
            try:
                invocation = parse_tool_call(call.name, call.arguments)
            except ToolArgumentError as e:
                logger.warning("Rejected tool call: %s", e)
                return ToolResult.fail(str(e))
            return await surface.execute(invocation)

        try:
            return await recorder.record(call.name, call.arguments, execute)
        finally:
            self.channel.drain()

    def _load_stored(self, domain: str) -> Optional[SiteCapability]:
        """Previously stored document, used only for page metadata during the session."""
        try:
            return self.store.load(domain)
        except (PersistenceError, OSError, ValueError) as e:
            logger.warning("Could not load stored capability for %s: %s", domain, e)
            return None

    def _persist(
        self, accumulator: CapabilityAccumulator, recorder: StepRecorder, scenario_id: str,
    ) -> tuple[SiteCapability, str | None, str | None]:
        """Merge and save the snapshot. Returns (document, location, error); never raises."""
        snapshot = accumulator.snapshot()
        try:
            site, saved_path = merge_and_save(self.store, snapshot, self.config.merge_policy)
        except (PersistenceError, OSError, ValueError) as e:
            logger.error("Failed to persist capability for %s: %s", snapshot.domain, e)
            return snapshot, None, f"Failed to persist capability document: {e}"
        except Exception as e:
            logger.exception("Unexpected error persisting capability for %s", snapshot.domain)
            return snapshot, None, f"Failed to persist capability document: {type(e).__name__}: {e}"

        trail = self.output_dir / domain_slug(snapshot.domain) / "steps" / f"{scenario_id}.jsonl"
        try:
            recorder.save_audit_trail(trail)
        except OSError as e:
            logger.warning("Could not write step audit trail to %s: %s", trail, e)
        return site, saved_path, None


async def _record(config: RecordingConfig, on_step: StepObserver | None) -> RecordingResult:
    async with ActionBuilder(config, on_step=on_step) as builder:
        return await builder.build()


def run_recording(config: RecordingConfig, on_step: StepObserver | None = None) -> RecordingResult:
    """Launch a browser, record ``config.target_url``, and close everything."""
    return asyncio.run(_record(config, on_step))

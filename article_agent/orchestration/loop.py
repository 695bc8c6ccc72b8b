"""Orchestration loop: drives the writer agent from plan to final article.

States: INIT -> PLANNING -> WRITING (one section per write_section call)
-> FINALIZING -> COMPLETED, with ERROR reachable from anywhere.

Each round sends the whole transcript to the runtime, which executes tool
calls through the registry and streams events back. The round's entries are
appended to a new transcript. The run ends once a write_section call with
is_last=true has been executed successfully.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import List, Optional

import aiosqlite

from article_agent.errors import (
    ArticleAgentError,
    SafetyLimitExceeded,
    StalledAgentError,
)
from article_agent.llm.runtime import (
    MessageCompleted,
    ModelRuntime,
    TextDelta,
    ToolCalled,
    ToolOutput,
)
from article_agent.models import (
    AssembledArticle,
    ConversationMessage,
    GenerationPhase,
    ProgressEventType,
    SessionProgress,
    SettingsConfig,
)
from article_agent.orchestration.broadcaster import BroadcastRegistry
from article_agent.orchestration.cancellation import CancellationToken
from article_agent.orchestration.finalizer import ArticleFinalizer
from article_agent.orchestration.session_manager import SessionManager
from article_agent.orchestration.transcript import Transcript
from article_agent.tools import (
    ArticleToolkit,
    GuidelineLibrary,
    TavilySearchTool,
    Tool,
    ToolRegistry,
    create_file_search_tool,
    create_web_search_tool,
)
from article_agent.utils import structured_log
from article_agent.writing import prompts

logger = logging.getLogger(__name__)


def build_search_tools(settings: SettingsConfig) -> List[Tool]:
    """file_search over the guideline library, plus web_search when Tavily is configured."""
    search = settings.search
    tools = [
        create_file_search_tool(GuidelineLibrary(search.guidelines_dir), search.file_max_results)
    ]
    if search.web_search_enabled:
        if os.getenv("TAVILY_API_KEY"):
            tools.append(create_web_search_tool(TavilySearchTool(), search.web_max_results))
        else:
            logger.warning("TAVILY_API_KEY not set; web_search disabled")
    return tools


@dataclass
class _RoundOutcome:
    entries: List[ConversationMessage] = field(default_factory=list)
    called_tool: bool = False
    reply: str = ""


class ArticleOrchestrator:
    """Runs generation sessions for one database and one broadcaster."""

    def __init__(
        self,
        db: aiosqlite.Connection,
        runtime: ModelRuntime,
        broadcaster: BroadcastRegistry,
        settings: SettingsConfig,
        search_tools: Optional[List[Tool]] = None,
    ):
        self.runtime = runtime
        self.broadcaster = broadcaster
        self.settings = settings
        self.sessions = SessionManager(db, step_id=settings.workflow.step_id)
        self.finalizer = ArticleFinalizer(db, step_id=settings.workflow.step_id)
        self.search_tools = search_tools if search_tools is not None else build_search_tools(settings)

    async def start_session(self, workflow_id: str, outline: str) -> str:
        return await self.sessions.start_session(
            workflow_id, outline, model=self.settings.writer.model
        )

    async def get_progress(self, session_id: str) -> Optional[SessionProgress]:
        return await self.sessions.get_progress(session_id)

    def _build_registry(self, toolkit: ArticleToolkit) -> ToolRegistry:
        registry = ToolRegistry()
        for tool in self.search_tools:
            registry.register(tool)
        toolkit.register(registry)
        return registry

    async def generate_article(
        self, session_id: str, cancel_token: Optional[CancellationToken] = None
    ) -> AssembledArticle:
        """Run the session to completion and return the assembled article.

        Any failure marks the session `error`, broadcasts an error event and
        is re-raised. Raises SessionNotFoundError for an unknown session.
        """
        session = await self.sessions.require_session(session_id)
        if not session.is_active:
            raise ArticleAgentError(
                f"Session {session_id} is {session.status.value}; start a new session to regenerate"
            )

        token = cancel_token or CancellationToken()
        structured_log.bind_session(session.session_id, session.workflow_id, session.version)
        toolkit = ArticleToolkit(
            self.sessions,
            self.finalizer,
            self.broadcaster,
            session_id,
            generation=self.settings.generation,
            style_rules=session.session_metadata.get("style_rules"),
        )
        registry = self._build_registry(toolkit)
        structured_log.log_phase(GenerationPhase.INIT.value, "start", tools=registry.list_tools())

        try:
            return await self._run(session.outline, toolkit, registry, token)
        except asyncio.CancelledError:
            await self._fail(session_id, "Generation cancelled")
            raise
        except Exception as e:
            await self._fail(session_id, str(e) or type(e).__name__)
            raise
        finally:
            structured_log.unbind_session()

    async def _fail(self, session_id: str, message: str) -> None:
        logger.error(f"Generation failed for session {session_id}: {message}")
        structured_log.log_phase(GenerationPhase.ERROR.value, "error", error=message)
        await self.sessions.mark_error(session_id, message)
        await self.broadcaster.emit(session_id, ProgressEventType.ERROR, message=message)

    def _check_limits(
        self,
        message_count: int,
        toolkit: ArticleToolkit,
        round_number: int,
        started: float,
    ) -> None:
        if toolkit.completed:
            return
        gen = self.settings.generation
        if message_count > gen.max_messages:
            raise SafetyLimitExceeded(
                f"Message limit of {gen.max_messages} reached before the final section"
            )
        if toolkit.sections_written > gen.max_sections:
            raise SafetyLimitExceeded(
                f"Section limit of {gen.max_sections} exceeded before the final section"
            )
        if round_number >= gen.max_rounds:
            raise SafetyLimitExceeded(f"Round limit of {gen.max_rounds} reached")
        if time.monotonic() - started > gen.max_wall_seconds:
            raise SafetyLimitExceeded(
                f"Generation exceeded {gen.max_wall_seconds:.0f}s wall-clock limit"
            )

    async def _run(
        self,
        outline: str,
        toolkit: ArticleToolkit,
        registry: ToolRegistry,
        token: CancellationToken,
    ) -> AssembledArticle:
        gen = self.settings.generation
        writer = self.settings.writer
        session_id = toolkit.session_id
        started = time.monotonic()

        structured_log.log_phase(GenerationPhase.PLANNING.value, "start")
        await self.broadcaster.emit(
            session_id,
            ProgressEventType.STATUS,
            phase=GenerationPhase.PLANNING.value,
            message="Researching guidelines and planning the article",
        )
        transcript = Transcript.start(
            prompts.build_priming_prompt(
                outline,
                gen.default_word_range,
                toolkit.style_rules,
                web_search_enabled="web_search" in registry.list_tools(),
            )
        )
        await self.broadcaster.emit(
            session_id,
            ProgressEventType.STATUS,
            phase=GenerationPhase.PLANNING.value,
            stage="prompt_sent",
            message=f"Prompt sent to {writer.model}",
        )

        stalls = 0
        round_number = 0
        while True:
            token.raise_if_cancelled()
            self._check_limits(len(transcript), toolkit, round_number, started)
            round_number += 1
            structured_log.log_round(round_number, len(transcript))
            logger.debug(f"Round {round_number} with {len(transcript)} messages")

            outcome = await self._run_round(transcript, toolkit, registry, token, started)
            transcript = transcript.extend(outcome.entries)
            if outcome.called_tool:
                stalls = 0

            if toolkit.completed:
                break

            if outcome.reply:
                await self.broadcaster.emit(
                    session_id, ProgressEventType.ASSISTANT, content=outcome.reply
                )
            if not outcome.called_tool:
                stalls += 1
                logger.warning(
                    f"Model replied without calling a tool ({stalls}/{gen.max_stall_retries})"
                )
                if stalls > gen.max_stall_retries:
                    raise StalledAgentError(
                        f"Model stopped calling tools after {stalls} corrective prompts"
                    )
            transcript = transcript.append(ConversationMessage.user(prompts.CORRECTIVE_NUDGE))
            await token.sleep(gen.round_delay_seconds)

        structured_log.log_phase(GenerationPhase.FINALIZING.value, "done")
        article = toolkit.article
        if article is None:
            raise ArticleAgentError(f"Session {session_id} finished without an assembled article")
        structured_log.log_phase(
            GenerationPhase.COMPLETED.value,
            "done",
            rounds=round_number,
            sections=article.total_sections,
            words=article.total_words,
        )
        logger.info(
            f"Session {session_id} completed in {round_number} round(s): "
            f"{article.total_sections} sections, {article.total_words} words"
        )
        return article

    async def _run_round(
        self,
        transcript: Transcript,
        toolkit: ArticleToolkit,
        registry: ToolRegistry,
        token: CancellationToken,
        started: float,
    ) -> _RoundOutcome:
        """Stream one runtime round, forwarding events and collecting transcript entries.

        Stops early once the terminal section has been written.
        """
        gen = self.settings.generation
        writer = self.settings.writer
        session_id = toolkit.session_id
        outcome = _RoundOutcome()

        events = self.runtime.run_round(
            model=writer.model,
            instructions=prompts.AGENT_INSTRUCTIONS,
            messages=transcript.messages,
            registry=registry,
            max_turns=gen.max_turns_per_round,
            temperature=writer.temperature,
        )
        async with aclosing(events):
            async for event in events:
                token.raise_if_cancelled()
                if isinstance(event, TextDelta):
                    if event.delta:
                        await self.broadcaster.emit(
                            session_id, ProgressEventType.TEXT, delta=event.delta
                        )
                elif isinstance(event, ToolCalled):
                    outcome.called_tool = True
                    outcome.entries.append(ConversationMessage.assistant_tool_call(event.call))
                    await self.broadcaster.emit(
                        session_id,
                        ProgressEventType.TOOL_CALL,
                        tool=event.call.name,
                        call_id=event.call.call_id,
                        arguments=sorted(event.call.arguments),
                    )
                elif isinstance(event, ToolOutput):
                    outcome.entries.append(
                        ConversationMessage.tool_output(event.call_id, event.name, event.output)
                    )
                    # The completed event has already gone out and must stay last.
                    if toolkit.completed:
                        break
                    await self.broadcaster.emit(
                        session_id,
                        ProgressEventType.TOOL_OUTPUT,
                        tool=event.name,
                        call_id=event.call_id,
                        ok=event.ok,
                        summary=prompts.tool_result_summary(event.output),
                    )
                    self._check_limits(
                        len(transcript) + len(outcome.entries), toolkit, 0, started
                    )
                elif isinstance(event, MessageCompleted):
                    outcome.reply = event.content
                    if event.content:
                        outcome.entries.append(ConversationMessage.assistant(event.content))
        return outcome
